from sqlalchemy.orm import Session
from typing import Set
import structlog

from marketplace.core.exceptions import ItemNotFound, UserNotFound
from marketplace.db.documents import delete_document
from marketplace.models.item import Item
from marketplace.models.user import User
from marketplace.services.review_ledger import ReviewLedger

logger = structlog.get_logger()


def delete_item(db: Session, item_id: int) -> Set[str]:
    """
    Delete an item and every user-side copy of its reviews.

    Mirror copies are detached before the item row is removed. If removing
    the row fails the detached copies stay detached and the error is raised.

    Args:
        db (Session): Database session
        item_id (int): Item to delete

    Returns:
        Set[str]: Usernames whose ratings were recomputed
    """
    item = db.query(Item).filter(Item.id == item_id).first()
    if not item:
        raise ItemNotFound()

    affected_users = ReviewLedger.delete_all_for_item(db, item)

    delete_document(db, item, "Failed to delete the item")

    ReviewLedger.reaggregate_users(db, affected_users)

    logger.info(
        "item_cascade_deleted",
        item_id=item_id,
        affected_users=len(affected_users),
    )
    return affected_users


def delete_user(db: Session, username: str) -> Set[int]:
    """
    Delete a user and every item-side copy of their reviews.

    Returns:
        Set[int]: Item ids whose ratings were recomputed
    """
    user = db.query(User).filter(User.username == username).first()
    if not user:
        raise UserNotFound()

    affected_items = ReviewLedger.delete_all_for_user(db, user)

    delete_document(db, user, "Failed to delete user")

    ReviewLedger.reaggregate_items(db, affected_items)

    logger.info(
        "user_cascade_deleted",
        username=username,
        affected_items=len(affected_items),
    )
    return affected_items


def delete_all_items(db: Session) -> int:
    """Cascade-delete every item. Returns the number of items removed."""
    item_ids = [item_id for (item_id,) in db.query(Item.id).order_by(Item.id).all()]
    for item_id in item_ids:
        delete_item(db, item_id)
    return len(item_ids)


def delete_all_users(db: Session) -> int:
    """Cascade-delete every user. Returns the number of users removed."""
    usernames = [username for (username,) in db.query(User.username).order_by(User.id).all()]
    for username in usernames:
        delete_user(db, username)
    return len(usernames)
