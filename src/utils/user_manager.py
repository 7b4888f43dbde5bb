"""User management utilities.

This module provides user management functionality including user storage,
password hashing and credential checks for sign up and sign in.
"""

import logging
from typing import Optional

import bcrypt
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from schemas.user import User
from models.user import UserModel

logger = logging.getLogger(__name__)

# Bcrypt rounds for password hashing (higher = more secure but slower)
BCRYPT_ROUNDS = 12


class UserNotFoundError(Exception):
    """Exception raised when a user is not found."""

    pass


class UserAlreadyExistsError(Exception):
    """Exception raised when trying to create a user that already exists."""

    pass


def model_to_user(model: UserModel) -> User:
    return User.model_validate(model)


class UserManager:
    """Manages user data persistence and operations using SQLAlchemy."""

    def __init__(self, db: Session, bcrypt_rounds: int = BCRYPT_ROUNDS):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy Session.
            bcrypt_rounds: Cost factor for new password hashes.
        """
        self.db = db
        self.bcrypt_rounds = bcrypt_rounds

    @staticmethod
    def _password_bytes(password: str) -> bytes:
        password_bytes = password.encode("utf-8")
        # bcrypt only looks at the first 72 bytes
        if len(password_bytes) > 72:
            password_bytes = password_bytes[:72]
        return password_bytes

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password.

        Returns:
            Hashed password (bcrypt hash string).
        """
        salt = bcrypt.gensalt(rounds=self.bcrypt_rounds)
        return bcrypt.hashpw(self._password_bytes(password), salt).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            plain_password: Plain text password to verify.
            hashed_password: Bcrypt hash string to verify against.

        Returns:
            True if password matches, False otherwise.
        """
        try:
            return bcrypt.checkpw(
                self._password_bytes(plain_password), hashed_password.encode("utf-8")
            )
        except ValueError as e:
            logger.error("Password verification error: %s", e)
            return False

    def create_user(
        self,
        email: str,
        password: str,
        role: str,
        full_name: str,
        mobile_number: Optional[str] = None,
        age: Optional[int] = None,
    ) -> User:
        """Create a new user with profile metadata.

        Args:
            email: Login email (stored lower-cased).
            password: Plain text password.
            role: User role ('teacher' or 'student').
            full_name: Display name.
            mobile_number: Optional phone number.
            age: Optional age.

        Returns:
            Created User object.

        Raises:
            UserAlreadyExistsError: If the email is already registered.
        """
        email = email.strip().lower()
        if self.get_user_by_email(email) is not None:
            raise UserAlreadyExistsError("This email is already registered. Please sign in instead.")

        user = User(
            email=email,
            password_hash=self.hash_password(password),
            role=role,
            full_name=full_name,
            mobile_number=mobile_number,
            age=age,
        )

        # The unique constraint on email catches a concurrent sign up that
        # passed the check above
        try:
            model = UserModel(
                user_id=user.user_id,
                email=user.email,
                password_hash=user.password_hash,
                role=user.role,
                full_name=user.full_name,
                mobile_number=user.mobile_number,
                age=user.age,
                created_at=user.created_at,
            )
            self.db.add(model)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise UserAlreadyExistsError("This email is already registered. Please sign in instead.") from e

        logger.info("Created %s user: %s", role, email)
        return user

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user when the credentials match, None otherwise."""
        user = self.get_user_by_email(email)
        if user is None:
            return None
        if not self.verify_password(password, user.password_hash):
            return None
        return user

    def get_user_by_email(self, email: str) -> Optional[User]:
        model = self.db.query(UserModel).filter(UserModel.email == email.strip().lower()).first()
        if model:
            return model_to_user(model)
        return None

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get a user by user ID.

        Args:
            user_id: User ID to look up.

        Returns:
            User object if found, None otherwise.
        """
        model = self.db.query(UserModel).filter(UserModel.user_id == user_id).first()
        if model:
            return model_to_user(model)
        return None

    def require_user(self, user_id: str) -> User:
        user = self.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User with id '{user_id}' not found.")
        return user

