"""Authentication routes.

This module handles HTTP endpoints for sign up, sign in, sign out and the
current user, plus the token helpers shared by the other routers.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import pytz
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET_KEY
from schemas.user import (
    CurrentUserResponse,
    LoginResponse,
    SignInRequest,
    SignUpRequest,
    User,
    UserInfo,
)
from utils.user_manager import UserAlreadyExistsError, UserNotFoundError
from core.dependencies import UserManagerDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

# HTTP Bearer token security
security = HTTPBearer()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token.

    Args:
        data: Data to encode in the token.
        expires_delta: Optional expiration time delta.

    Returns:
        Encoded JWT token string.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(pytz.utc) + expires_delta
    else:
        expire = datetime.now(pytz.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Optional[str]:
    """Return the user id carried by a token, or None if the token is invalid."""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")


def verify_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """Verify JWT token from Authorization header.

    Args:
        credentials: HTTP Bearer token credentials.

    Returns:
        The user id from the token subject.

    Raises:
        HTTPException: If token is invalid or expired.
    """
    user_id = decode_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )
    return user_id


def get_current_user(
    user_id: str = Depends(verify_token),
    user_manager: UserManagerDep = None,
) -> User:
    """Get current authenticated user.

    Args:
        user_id: User id from the verified token.
        user_manager: Injected UserManager instance.

    Returns:
        Current User object.

    Raises:
        HTTPException: If user is not found.
    """
    try:
        return user_manager.require_user(user_id)
    except UserNotFoundError as e:
        logger.warning("Token for unknown user: %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        ) from e


def _login_response(user: User) -> LoginResponse:
    token = create_access_token(
        data={"sub": user.user_id},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return LoginResponse(user=UserInfo.model_validate(user), token=token)


@router.post(
    "/signup",
    response_model=LoginResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Sign up",
)
def signup(
    req: SignUpRequest,
    user_manager: UserManagerDep = None,
) -> LoginResponse:
    """Create an account and sign it in.

    Raises:
        HTTPException: 409 if the email is already registered.
    """
    try:
        user = user_manager.create_user(
            email=req.email,
            password=req.password,
            role=req.role,
            full_name=req.full_name,
            mobile_number=req.mobile_number,
            age=req.age,
        )
    except UserAlreadyExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    return _login_response(user)


@router.post("/signin", response_model=LoginResponse, summary="Sign in")
def signin(
    req: SignInRequest,
    user_manager: UserManagerDep = None,
) -> LoginResponse:
    """Sign in with email and password.

    Args:
        req: Sign in request with email and password.
        user_manager: Injected UserManager instance.

    Returns:
        LoginResponse with user information and JWT token.

    Raises:
        HTTPException: If the credentials do not match.
    """
    user = user_manager.authenticate(req.email, req.password)
    if user is None:
        logger.warning("Failed sign in for %s", req.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return _login_response(user)


@router.post("/signout", summary="Sign out")
def signout(current_user: User = Depends(get_current_user)) -> dict:
    """Sign out endpoint.

    Note: Since we're using stateless JWT tokens, sign out is handled
    client-side by removing the token. This endpoint exists for API
    consistency.
    """
    return {"success": True, "message": "Signed out successfully"}


@router.get("/me", response_model=CurrentUserResponse, summary="Current user")
def get_current_user_info(
    current_user: User = Depends(get_current_user),
) -> CurrentUserResponse:
    return CurrentUserResponse(user=UserInfo.model_validate(current_user))
