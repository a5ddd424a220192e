from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
import structlog

from marketplace.core.exceptions import UserNotFound, UsernameAlreadyExists
from marketplace.core.security import hash_password, verify_password
from marketplace.models.user import User
from marketplace.schemas.user import UserCreate

logger = structlog.get_logger()


class UserService:

    @staticmethod
    def create_user(db: Session, user_in: UserCreate) -> User:
        existing_user = db.query(User).filter(User.username == user_in.username).first()
        if existing_user:
            raise UsernameAlreadyExists()

        user = User(
            username=user_in.username,
            password_hash=hash_password(user_in.password),
            is_admin=user_in.is_admin,
            average_rating=0.0,
            review_count=0,
            reviews=[],
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise UsernameAlreadyExists()
        db.refresh(user)

        logger.info("user_created", username=user.username, is_admin=user.is_admin)
        return user

    @staticmethod
    def get_user(db: Session, username: str) -> User:
        user = db.query(User).filter(User.username == username).first()
        if not user:
            raise UserNotFound()
        return user

    @staticmethod
    def list_users(db: Session) -> List[User]:
        return db.query(User).order_by(User.username.asc()).all()

    @staticmethod
    def authenticate(db: Session, username: str, password: str) -> Optional[User]:
        """Return the user when the credentials match, otherwise None."""
        user = db.query(User).filter(User.username == username).first()
        if not user:
            logger.info("login_failed", username=username, reason="unknown_user")
            return None
        if not verify_password(password, user.password_hash):
            logger.info("login_failed", username=username, reason="bad_password")
            return None
        return user
