"""
Authentication and role checks.

Accounts come from an externally configured credential store (a JSON file or
environment-seeded accounts, see config.py). Clients authenticate either with
HTTP Basic credentials or with a bearer token issued by POST /auth/login.

Roles:
- admin: every operation, including all writes
- user: read and search only
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBasic, HTTPBasicCredentials, HTTPBearer

from config import Settings

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_USER = "user"
VALID_ROLES = (ROLE_ADMIN, ROLE_USER)

basic_scheme = HTTPBasic(auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)


# ============================================================================
# PASSWORDS & TOKENS
# ============================================================================

def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.info(f"Rejected bearer token: {e}")
        return None


# ============================================================================
# CREDENTIAL STORE
# ============================================================================

@dataclass
class Principal:
    username: str
    password_hash: str
    roles: List[str] = field(default_factory=list)

    def has_role(self, role: str) -> bool:
        # admin implies user
        if role == ROLE_USER and ROLE_ADMIN in self.roles:
            return True
        return role in self.roles


class CredentialStore:
    def __init__(self, principals: Optional[Iterable[Principal]] = None):
        self._principals: Dict[str, Principal] = {}
        for principal in principals or []:
            self.add(principal)

    def __len__(self) -> int:
        return len(self._principals)

    def add(self, principal: Principal) -> None:
        unknown = [r for r in principal.roles if r not in VALID_ROLES]
        if unknown:
            raise ValueError(f"Invalid role(s) {unknown} for {principal.username}. Must be one of: {', '.join(VALID_ROLES)}")
        self._principals[principal.username] = principal

    def get(self, username: str) -> Optional[Principal]:
        return self._principals.get(username)

    def authenticate(self, username: str, password: str) -> Optional[Principal]:
        principal = self.get(username)
        if principal is None or not verify_password(password, principal.password_hash):
            return None
        return principal

    @classmethod
    def from_file(cls, path: str) -> "CredentialStore":
        """
        Load accounts from a JSON file:
            [{"username": "...", "password_hash": "<bcrypt>", "roles": ["admin"]}, ...]
        """
        with open(path, "r", encoding="utf-8") as f:
            entries = json.load(f)
        store = cls(
            Principal(
                username=entry["username"],
                password_hash=entry["password_hash"],
                roles=list(entry.get("roles") or [ROLE_USER]),
            )
            for entry in entries
        )
        logger.info(f"Loaded {len(store)} account(s) from {path}")
        return store

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialStore":
        if settings.credentials_file:
            return cls.from_file(settings.credentials_file)

        store = cls()
        for username, password in settings.seed_admins.items():
            store.add(Principal(username, get_password_hash(password), [ROLE_ADMIN, ROLE_USER]))
        for username, password in settings.seed_users.items():
            store.add(Principal(username, get_password_hash(password), [ROLE_USER]))
        if not len(store):
            logger.warning("No accounts configured; every protected endpoint will reject requests")
        return store


# ============================================================================
# DEPENDENCIES
# ============================================================================

def _unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Basic"},
    )


def get_current_user(
    request: Request,
    basic: Optional[HTTPBasicCredentials] = Depends(basic_scheme),
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    store: CredentialStore = request.app.state.credentials
    settings: Settings = request.app.state.settings

    if bearer is not None:
        payload = decode_access_token(bearer.credentials, settings)
        principal = store.get(payload.get("sub")) if payload else None
        if principal is None:
            raise _unauthorized("Invalid or expired token")
        return principal

    if basic is not None:
        principal = store.authenticate(basic.username, basic.password)
        if principal is None:
            logger.info(f"Failed basic authentication for username: {basic.username}")
            raise _unauthorized("Incorrect username or password")
        return principal

    raise _unauthorized()


def require_roles(*roles: str):
    """Dependency factory: the current user must hold at least one of `roles`."""

    def checker(current_user: Principal = Depends(get_current_user)) -> Principal:
        if not any(current_user.has_role(role) for role in roles):
            logger.warning(f"Access denied for {current_user.username}: requires one of {roles}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to access this resource.",
            )
        return current_user

    return checker
