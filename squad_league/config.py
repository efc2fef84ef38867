"""Runtime configuration read from the environment (and an optional .env file)."""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application settings."""

    # Storage
    DATABASE_PATH = os.getenv("SQUAD_LEAGUE_DB_PATH", "squad_league.db")

    # Logging
    LOG_LEVEL = os.getenv("SQUAD_LEAGUE_LOG_LEVEL", "INFO").upper()

    # Rating settings
    DEFAULT_ELO = int(os.getenv("SQUAD_LEAGUE_DEFAULT_ELO", 1500))
    DEFAULT_MU = float(os.getenv("SQUAD_LEAGUE_DEFAULT_MU", 15.0))
    DEFAULT_SIGMA = float(os.getenv("SQUAD_LEAGUE_DEFAULT_SIGMA", 4.0))

    # Number of read/write attempts before a stats update gives up on
    # version conflicts.
    UPDATE_ATTEMPTS = int(os.getenv("SQUAD_LEAGUE_UPDATE_ATTEMPTS", 3))

    @classmethod
    def validate(cls) -> None:
        """Reject settings the services cannot work with."""

        if cls.UPDATE_ATTEMPTS < 1:
            raise ValueError("SQUAD_LEAGUE_UPDATE_ATTEMPTS must be at least 1")
        if cls.DEFAULT_SIGMA <= 0:
            raise ValueError("SQUAD_LEAGUE_DEFAULT_SIGMA must be positive")


__all__ = ["Config"]
