from sqlalchemy.orm import Session
import structlog
from marketplace.core.config import settings
from marketplace.core.security import hash_password
from marketplace.db.base import Base
from marketplace.db.session import engine
from marketplace.models.user import User

logger = structlog.get_logger()


def create_tables() -> None:
    Base.metadata.create_all(bind=engine)


def init_db(db: Session) -> None:
    """Create tables and the bootstrap admin account"""
    create_tables()

    admin = db.query(User).filter(User.username == settings.DEFAULT_ADMIN_USERNAME).first()
    if admin:
        return

    seed_password = (settings.DEFAULT_ADMIN_PASSWORD or "").strip()
    if not seed_password:
        message = (
            "Missing admin bootstrap credentials: set DEFAULT_ADMIN_PASSWORD "
            "or create an admin user manually before launch."
        )
        if settings.ENVIRONMENT == "production":
            logger.error("admin_bootstrap_missing", env=settings.ENVIRONMENT)
            raise RuntimeError(message)
        logger.warning("admin_bootstrap_missing", env=settings.ENVIRONMENT)
        return

    admin = User(
        username=settings.DEFAULT_ADMIN_USERNAME,
        password_hash=hash_password(seed_password),
        is_admin=True,
        average_rating=0.0,
        review_count=0,
        reviews=[],
    )
    db.add(admin)
    db.commit()
    logger.info("admin_user_created", username=admin.username)


if __name__ == "__main__":
    from marketplace.core.logging_config import configure_logging
    from marketplace.db.session import SessionLocal

    configure_logging()
    db = SessionLocal()
    try:
        init_db(db)
    finally:
        db.close()
