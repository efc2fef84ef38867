"""Error types raised and reported by the league services."""

from __future__ import annotations

from typing import Optional


class LeagueError(Exception):
    """Base class for league errors."""

    def __init__(self, message: str, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message or message


class ValidationError(LeagueError):
    """Input was missing or malformed."""


class NotFoundError(LeagueError):
    """A referenced row does not exist."""

    def __init__(self, kind: str, identifier: object) -> None:
        super().__init__(f"{kind} not found: {identifier}", f"{kind} not found")
        self.kind = kind
        self.identifier = identifier


class ConflictError(LeagueError):
    """The request clashes with the current state (e.g. an active season)."""


class RemoteFetchError(LeagueError):
    """Reading from storage failed."""

    def __init__(self, operation: str, details: object = None) -> None:
        super().__init__(
            f"Storage read failed during {operation}: {details}",
            "Could not load data. Please try again later.",
        )
        self.operation = operation


class RemoteWriteError(LeagueError):
    """Writing to storage failed, or kept losing version races."""

    def __init__(self, operation: str, details: object = None) -> None:
        super().__init__(
            f"Storage write failed during {operation}: {details}",
            "Could not save changes. Please try again later.",
        )
        self.operation = operation


__all__ = [
    "ConflictError",
    "LeagueError",
    "NotFoundError",
    "RemoteFetchError",
    "RemoteWriteError",
    "ValidationError",
]
