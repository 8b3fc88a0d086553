"""Authentication router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db, transaction
from app.core.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
)
from app.modules.auth.schemas import (
    SELF_SERVICE_ROLES,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    UserResponse,
)
from app.modules.memberships import repository as membership_repository
from app.modules.memberships.tokens import issue_school_token
from app.modules.shared.identifiers import generate_username
from app.modules.users.models import User
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

router = APIRouter()


def _invalid_credentials() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": "INVALID_CREDENTIALS",
            "message": "Invalid email or password.",
        },
    )


def _email_taken() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "error": "EMAIL_EXISTS",
            "message": "An account with this email already exists.",
        },
    )


async def _school_token_for(db: AsyncSession, user: User) -> str | None:
    """Issue a school token for the user's current school, if they still belong to it."""
    if not user.current_school_id:
        return None

    found = await membership_repository.find_membership(db, user.id, user.current_school_id)
    if found is None:
        logger.info(f"User {user.id} has no membership in current school {user.current_school_id}")
        return None

    kind, record = found
    return issue_school_token(kind, record)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """
    Create a user account.

    Raises:
        HTTPException 400: Role not available at sign-up
        HTTPException 409: Email already registered
    """
    if data.role is not None and data.role not in SELF_SERVICE_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "INVALID_ROLE",
                "message": f"Role {data.role.value} can not be chosen at sign-up.",
            },
        )

    if await UserRepository.email_exists(db, data.email):
        logger.warning("Registration attempt for an existing email")
        raise _email_taken()

    username = generate_username(data.name)
    if await UserRepository.username_exists(db, username):
        username = generate_username(data.name)

    try:
        async with transaction(db):
            user = await UserRepository.create(
                db,
                email=data.email,
                username=username,
                name=data.name,
                password_hash=hash_password(data.password),
                role=data.role,
                phone=data.phone,
                gender=data.gender,
            )
    except IntegrityError as e:
        raise _email_taken() from e

    logger.info(f"User registered: {user.id} (role: {user.role.value if user.role else None})")
    return UserResponse.model_validate(user)


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Authenticate user and return JWT tokens.

    Args:
        credentials: Email and password
        db: Database session

    Returns:
        Access token, refresh token, user info and, when the user has a
        current school membership, a school-scoped token

    Raises:
        HTTPException 401: Invalid credentials
    """
    user = await UserRepository.get_by_email(db, credentials.email)

    if not user:
        logger.warning("Login attempt for non-existent email")
        raise _invalid_credentials()

    if not verify_password(credentials.password, user.password_hash):
        logger.warning(f"Invalid password for user: {user.id}")
        raise _invalid_credentials()

    additional_claims = {
        "email": user.email,
        "role": user.role.value if user.role else None,
        "name": user.name,
    }

    access_token = create_access_token(
        subject=str(user.id),
        additional_claims=additional_claims,
    )
    refresh_token = create_refresh_token(subject=str(user.id))
    school_token = await _school_token_for(db, user)

    logger.info(f"User logged in: {user.id} (role: {additional_claims['role']})")

    return LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        school_token=school_token,
        user=UserResponse.model_validate(user),
    )
