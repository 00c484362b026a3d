"""
Authentication routes: exchange username/password for a bearer token.
"""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status

from auth import CredentialStore, Principal, create_access_token, get_current_user
from schemas import TokenResponse, UserLoginRequest, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
)


@router.post("/login", response_model=TokenResponse)
def login_user(login: UserLoginRequest, request: Request):
    """
    Login user and return JWT token.
    """
    logger.info(f"Login request received for username: {login.username}")
    store: CredentialStore = request.app.state.credentials
    settings = request.app.state.settings

    user = store.authenticate(login.username, login.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(
        data={"sub": user.username, "roles": user.roles},
        settings=settings,
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )
    logger.info(f"User logged in: {user.username}")

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        user=UserResponse(username=user.username, roles=user.roles),
    )


@router.get("/me", response_model=UserResponse)
def get_current_user_profile(current_user: Principal = Depends(get_current_user)):
    """Get current user profile"""
    return UserResponse(username=current_user.username, roles=current_user.roles)
