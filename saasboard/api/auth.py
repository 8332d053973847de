"""
Authentication API endpoints.

Handles user registration and login. Both return a bearer token together
with the public user record.
"""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from saasboard.auth import create_access_token, hash_password, verify_password
from saasboard.core import (
    EmailTakenError,
    InvalidCredentialsError,
    PersistenceError,
    ValidationError,
    get_logger,
    rate_limit,
)
from saasboard.db import get_db
from saasboard.db.models import User
from saasboard.db.repositories import create_user, email_exists, get_user_by_email

logger = get_logger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    dependencies=[Depends(rate_limit("auth"))],
)


# Request/Response schemas
class RegisterRequest(BaseModel):
    """Registration request body."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)


class LoginRequest(BaseModel):
    """Login request body."""

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """Public user record."""

    id: str
    email: str
    name: str
    created_at: str
    updated_at: str


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        created_at=user.created_at.isoformat(),
        updated_at=user.updated_at.isoformat(),
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """
    Register a new user.

    The email is stored lower-cased; a second account with the same email is
    rejected with 409.
    """
    if not body.name.strip():
        raise ValidationError("Name is required")

    if email_exists(db, body.email):
        raise EmailTakenError()

    try:
        user = create_user(
            db,
            email=body.email,
            name=body.name,
            password_hash=hash_password(body.password),
        )
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same email
        db.rollback()
        raise EmailTakenError() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to create user", data={"error": str(exc)})
        raise PersistenceError("Error creating user") from exc

    logger.info("User registered", data={"user_id": user.id})
    return AuthResponse(token=create_access_token(user.id), user=_user_to_response(user))


@router.post("/login")
def login(body: LoginRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """
    Exchange email and password for a bearer token.

    Unknown email and wrong password produce the same error.
    """
    user = get_user_by_email(db, body.email)
    if not user or not verify_password(body.password, user.password_hash):
        logger.info("Login failed")
        raise InvalidCredentialsError()

    logger.info("User logged in", data={"user_id": user.id})
    return AuthResponse(token=create_access_token(user.id), user=_user_to_response(user))
