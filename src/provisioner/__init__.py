"""
Provisioner - idempotent, resumable single-host deployment of PHP applications.

This package exposes the ``provision`` CLI entrypoint together with the action,
registry, engine and state-store building blocks it is assembled from.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("provisioner")
except PackageNotFoundError:  # pragma: no cover - fallback for editable installs
    __version__ = "0.0.0"

__all__ = ["__version__"]
