# pymsh/errors.py
from __future__ import annotations

from typing import Optional


class PymshError(Exception):
    """Base class for every error raised by pymsh."""


class MeshError(PymshError):
    """A container mutation or generator call was rejected; the mesh is unchanged."""


class MeshParseError(PymshError):
    """Structural failure of the text format (bad magic, unreadable GROUPS line)."""

    def __init__(self, reason: str, lineno: Optional[int] = None):
        self.reason = reason
        self.lineno = lineno
        where = f" (line {lineno})" if lineno is not None else ""
        super().__init__(f"{reason}{where}")


class ValidationError(PymshError):
    """A mesh failed the pre-export consistency check."""

    def __init__(self, group: int, reason: str):
        self.group = group
        self.reason = reason
        super().__init__(f"group {group}: {reason}")
