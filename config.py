"""
Configuration for the Book Inventory Service.

`load_settings()` reads environment variables each time it is called and
returns a `Settings` snapshot; `create_app` takes that snapshot (or an
explicit one, as the tests do) instead of reading the environment itself.
"""

import os
import secrets
from dataclasses import dataclass, field
from typing import Dict, Optional

DEFAULT_DATABASE_URL = "sqlite:///./book_inventory.db"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _random_secret() -> str:
    # Tokens signed with it stop validating when the process restarts
    return secrets.token_urlsafe(32)


@dataclass
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    database_echo: bool = False
    log_level: str = "INFO"
    jwt_secret_key: str = field(default_factory=_random_secret)
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    # a JSON file takes precedence over the seeded accounts
    credentials_file: Optional[str] = None
    # username -> plain password; hashed when the credential store is built
    seed_admins: Dict[str, str] = field(default_factory=dict)
    seed_users: Dict[str, str] = field(default_factory=dict)
    enable_event_logging: bool = True


def load_settings() -> Settings:
    """Build a Settings snapshot from the environment as it is right now."""
    seed_admins: Dict[str, str] = {}
    seed_users: Dict[str, str] = {}
    admin_username, admin_password = os.getenv("ADMIN_USERNAME"), os.getenv("ADMIN_PASSWORD")
    user_username, user_password = os.getenv("USER_USERNAME"), os.getenv("USER_PASSWORD")
    if admin_username and admin_password:
        seed_admins[admin_username] = admin_password
    if user_username and user_password:
        seed_users[user_username] = user_password

    return Settings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        database_echo=_env_bool("DATABASE_ECHO", False),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        jwt_secret_key=os.getenv("JWT_SECRET_KEY") or _random_secret(),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60")),
        credentials_file=os.getenv("CREDENTIALS_FILE") or None,
        seed_admins=seed_admins,
        seed_users=seed_users,
        enable_event_logging=_env_bool("ENABLE_EVENT_LOGGING", True),
    )
