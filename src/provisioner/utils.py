"""Filesystem helpers shared by actions and collaborators."""
from __future__ import annotations

import grp
import os
import pwd
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple


def atomic_write(path: Path, content: str) -> None:
    """Replace ``path`` with ``content`` without exposing a half-written file."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        if path.exists():
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def format_env_value(value: str) -> str:
    """Quote a dotenv value when it would not survive being written bare."""

    if value == "" or any(ch in value for ch in " \t#\"'$\\="):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return value


def read_env_assignments(text: str) -> Dict[str, str]:
    """Map each ``KEY`` to the raw text after the first ``=`` on its last assignment line."""

    assignments: Dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if sep and key.strip() and not key.lstrip().startswith("#"):
            assignments[key.strip()] = value
    return assignments


def upsert_env_lines(text: str, values: Mapping[str, str]) -> str:
    """Replace existing ``KEY=`` lines in place and append missing keys."""

    lines: List[str] = text.splitlines()
    pending = dict(values)
    for index, line in enumerate(lines):
        key, sep, _ = line.partition("=")
        key = key.strip()
        # every duplicate is rewritten so whichever assignment wins is correct
        if sep and key in pending:
            lines[index] = f"{key}={format_env_value(pending[key])}"
    present = {line.partition("=")[0].strip() for line in lines if "=" in line}
    for key, value in pending.items():
        if key not in present:
            lines.append(f"{key}={format_env_value(value)}")
    return "\n".join(lines) + "\n"


def owner_of(path: Path) -> Optional[Tuple[str, str]]:
    """Return ``(user, group)`` names owning ``path`` or None if it is missing."""

    try:
        info = Path(path).stat()
    except FileNotFoundError:
        return None
    try:
        user = pwd.getpwuid(info.st_uid).pw_name
    except KeyError:
        user = str(info.st_uid)
    try:
        group = grp.getgrgid(info.st_gid).gr_name
    except KeyError:
        group = str(info.st_gid)
    return user, group
