from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import structlog

from marketplace.core.exceptions import InternalError

logger = structlog.get_logger()


def save_document(db: Session, document) -> None:
    """
    Commit pending changes to a single item or user row.

    Each row is written on its own: a logical review operation that touches
    an item and a user performs two of these calls, and a failure of the
    second leaves the first in place.
    """
    document_id = getattr(document, "id", None)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "document_write_failed",
            table=document.__tablename__,
            document_id=document_id,
            error=str(exc),
        )
        raise InternalError("Failed to write to storage") from exc


def delete_document(db: Session, document, message: str) -> None:
    """Remove a single row, surfacing storage failures as InternalError."""
    try:
        db.delete(document)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "document_delete_failed",
            table=document.__tablename__,
            error=str(exc),
        )
        raise InternalError(message) from exc
