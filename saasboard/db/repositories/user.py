"""
User repository for database operations.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from saasboard.db.models import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_id(db: Session, user_id: str) -> User | None:
    """Get user by ID."""
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get user by email (case-insensitive)."""
    if not email:
        return None
    stmt = select(User).where(User.email == normalize_email(email))
    return db.execute(stmt).scalar_one_or_none()


def email_exists(db: Session, email: str) -> bool:
    """Check if email is taken."""
    return get_user_by_email(db, email) is not None


def create_user(db: Session, email: str, name: str, password_hash: str) -> User:
    """
    Create a new user.

    Args:
        db: Database session.
        email: Unique email address (stored lower-cased).
        name: Display name.
        password_hash: Argon2id password hash.

    Returns:
        Created User object.
    """
    user = User(
        email=normalize_email(email),
        name=name.strip(),
        password_hash=password_hash,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: str) -> bool:
    """Delete a user; their conversations and messages go with them."""
    user = get_user_by_id(db, user_id)
    if not user:
        return False
    db.delete(user)
    db.commit()
    return True
