"""Masking of secret values in anything that reaches a log or the console."""
from __future__ import annotations

import logging
from typing import Iterable, List

PLACEHOLDER = "********"


class Redactor:
    """Replace every registered secret with a fixed placeholder."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        self._secrets: List[str] = []
        self.add(*secrets)

    def add(self, *secrets: str) -> None:
        for secret in secrets:
            if secret and secret not in self._secrets:
                self._secrets.append(secret)
        # longest first so a secret containing another is masked whole
        self._secrets.sort(key=len, reverse=True)

    def __call__(self, text: str) -> str:
        return self.redact(text)

    def redact(self, text: str) -> str:
        if not text:
            return text
        for secret in self._secrets:
            text = text.replace(secret, PLACEHOLDER)
        return text


class RedactingFilter(logging.Filter):
    """Logging filter that renders the record and masks secrets in the result."""

    def __init__(self, redactor: Redactor) -> None:
        super().__init__()
        self._redactor = redactor

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        record.msg = self._redactor.redact(message)
        record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = self._redactor.redact(record.exc_text)
        return True


__all__ = ["PLACEHOLDER", "Redactor", "RedactingFilter"]
