"""Runtime configuration loaded from the environment and an optional .env file."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_MACHINE_STORE = "/var/lib/pkica"
DEFAULT_USER_STORE = os.path.join(os.path.expanduser("~"), ".pkica")


@dataclass
class Settings:
    authority: Optional[str] = None
    machine_store: str = DEFAULT_MACHINE_STORE
    user_store: str = DEFAULT_USER_STORE
    hash_name: str = "sha256"
    key_size: int = 2048
    backdate_days: int = 1


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Load settings from the process environment, reading .env first.

    Without ``env_file`` the nearest .env from the working directory upward
    is used. Values already present in the environment take precedence.
    """
    load_dotenv(env_file or find_dotenv(usecwd=True))

    return Settings(
        authority=os.getenv("PKICA_AUTHORITY") or None,
        machine_store=os.path.expanduser(os.getenv("PKICA_MACHINE_STORE", DEFAULT_MACHINE_STORE)),
        user_store=os.path.expanduser(os.getenv("PKICA_USER_STORE", DEFAULT_USER_STORE)),
        hash_name=os.getenv("PKICA_HASH", "sha256").lower(),
        key_size=int(os.getenv("PKICA_KEY_SIZE", "2048")),
        backdate_days=int(os.getenv("PKICA_BACKDATE_DAYS", "1")),
    )
