from sqlalchemy import String, cast
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
import math
import uuid
import structlog

from marketplace.core.exceptions import (
    ItemNotFound,
    ReviewNotFound,
    UserNotFound,
    ValidationFailed,
)
from marketplace.db.documents import save_document
from marketplace.models.item import Item
from marketplace.models.user import User
from marketplace.services.rating import aggregate

logger = structlog.get_logger()

RATING_MIN = 1
RATING_MAX = 10


def _is_entry(entry: Any, review_id: str) -> bool:
    return isinstance(entry, dict) and entry.get("id") == review_id


def _is_for_item(entry: Any, item_id: Any) -> bool:
    return isinstance(entry, dict) and str(entry.get("item_id")) == str(item_id)


def _is_by_user(entry: Any, username: str) -> bool:
    return isinstance(entry, dict) and entry.get("username") == username


def _without(entries: Optional[Iterable[Any]], review_id: str) -> List[Any]:
    return [entry for entry in entries or [] if not _is_entry(entry, review_id)]


def _with_changes(entries: Optional[Iterable[Any]], review_id: str, changes: Dict[str, Any]) -> List[Any]:
    # New dicts so the JSON column sees a changed value
    return [
        {**entry, **changes} if _is_entry(entry, review_id) else entry
        for entry in entries or []
    ]


class ReviewLedger:
    """
    Keeps the two copies of every review in step: one embedded in the
    reviewed item, one embedded in the reviewing user.

    Callers pass an already authenticated username; nothing here checks
    credentials.
    """

    @staticmethod
    def validate_rating(rating: Any) -> int:
        if isinstance(rating, bool) or not isinstance(rating, (int, float)):
            raise ValidationFailed("Rating must be an integer between 1 and 10")
        if isinstance(rating, float):
            if not math.isfinite(rating) or not rating.is_integer():
                raise ValidationFailed("Rating must be an integer between 1 and 10")
            rating = int(rating)
        if rating < RATING_MIN or rating > RATING_MAX:
            raise ValidationFailed("Rating must be between 1 and 10")
        return rating

    @staticmethod
    def _get_item(db: Session, item_id: Any) -> Item:
        if isinstance(item_id, bool):
            raise ValidationFailed("Invalid item ID format")
        try:
            item_key = int(item_id)
        except (TypeError, ValueError):
            raise ValidationFailed("Invalid item ID format")
        item = db.query(Item).filter(Item.id == item_key).first()
        if not item:
            raise ItemNotFound()
        return item

    @staticmethod
    def _get_user(db: Session, username: str) -> User:
        user = db.query(User).filter(User.username == username).first()
        if not user:
            raise UserNotFound()
        return user

    @staticmethod
    def find_item_review(db: Session, review_id: str) -> Tuple[Optional[Item], Optional[Dict[str, Any]]]:
        """Locate a review by id on the item side."""
        candidates = (
            db.query(Item)
            .filter(cast(Item.reviews, String).contains(review_id, autoescape=True))
            .all()
        )
        for item in candidates:
            for entry in item.reviews or []:
                if _is_entry(entry, review_id):
                    return item, entry
        return None, None

    @staticmethod
    def find_user_review(db: Session, review_id: str) -> Tuple[Optional[User], Optional[Dict[str, Any]]]:
        """Locate a review by id on the user side."""
        candidates = (
            db.query(User)
            .filter(cast(User.reviews, String).contains(review_id, autoescape=True))
            .all()
        )
        for user in candidates:
            for entry in user.reviews or []:
                if _is_entry(entry, review_id):
                    return user, entry
        return None, None

    @staticmethod
    def _detach(db: Session, item: Item, user: Optional[User], review_id: str) -> None:
        """Remove both copies of a review, item side first."""
        item.reviews = _without(item.reviews, review_id)
        item.review_count = len(item.reviews)
        save_document(db, item)

        if user is None:
            logger.warning("review_mirror_missing", review_id=review_id, side="user")
            return

        user.reviews = _without(user.reviews, review_id)
        user.review_count = len(user.reviews)
        save_document(db, user)

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    @staticmethod
    def reaggregate_item(db: Session, item_id: int) -> Optional[float]:
        """Recompute an item's rating from its stored review list."""
        item = db.get(Item, item_id, populate_existing=True)
        if item is None:
            return None
        item.rating = aggregate(item.reviews)
        save_document(db, item)
        return item.rating

    @staticmethod
    def reaggregate_user(db: Session, username: str) -> Optional[float]:
        """Recompute a user's average given rating from their stored review list."""
        user = (
            db.query(User)
            .populate_existing()
            .filter(User.username == username)
            .first()
        )
        if user is None:
            return None
        user.average_rating = aggregate(user.reviews)
        save_document(db, user)
        return user.average_rating

    @staticmethod
    def reaggregate_users(db: Session, usernames: Iterable[str]) -> None:
        for username in sorted(set(usernames)):
            ReviewLedger.reaggregate_user(db, username)

    @staticmethod
    def reaggregate_items(db: Session, item_ids: Iterable[int]) -> None:
        for item_id in sorted(set(item_ids)):
            ReviewLedger.reaggregate_item(db, item_id)

    # ------------------------------------------------------------------
    # Single review operations
    # ------------------------------------------------------------------

    @staticmethod
    def submit(
        db: Session,
        item_id: Any,
        username: str,
        rating: Any,
        comment: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        """
        Create a review on both sides, replacing the user's previous review of
        the same item if there is one.

        Returns the new review and whether it replaced an older one.
        """
        missing = [
            name
            for name, value in (("itemId", item_id), ("username", username), ("rating", rating))
            if value is None or value == ""
        ]
        if missing:
            raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")

        rating = ReviewLedger.validate_rating(rating)
        comment = comment or ""

        item = ReviewLedger._get_item(db, item_id)
        user = ReviewLedger._get_user(db, username)
        item_key = item.id
        item_name = item.name

        # One review per (user, item): drop the old pair, aggregate once at the end
        existing = next((entry for entry in item.reviews or [] if _is_by_user(entry, username)), None)
        replaced = existing is not None
        if replaced:
            ReviewLedger._detach(db, item, user, existing.get("id"))
            logger.info(
                "review_replaced",
                review_id=existing.get("id"),
                item_id=item_key,
                username=username,
            )

        review_id = str(uuid.uuid4())
        created_at = datetime.utcnow().isoformat()

        item.reviews = list(item.reviews or []) + [{
            "id": review_id,
            "username": username,
            "rating": rating,
            "comment": comment,
            "created_at": created_at,
        }]
        item.review_count = len(item.reviews)
        save_document(db, item)

        user.reviews = list(user.reviews or []) + [{
            "id": review_id,
            "item_id": item_key,
            "item_name": item_name,
            "rating": rating,
            "comment": comment,
            "created_at": created_at,
        }]
        user.review_count = len(user.reviews)
        save_document(db, user)

        ReviewLedger.reaggregate_item(db, item_key)
        ReviewLedger.reaggregate_user(db, username)

        logger.info(
            "review_submitted",
            review_id=review_id,
            item_id=item_key,
            username=username,
            rating=rating,
            replaced=replaced,
        )

        review = {
            "id": review_id,
            "item_id": item_key,
            "item_name": item_name,
            "username": username,
            "rating": rating,
            "comment": comment,
            "created_at": created_at,
        }
        return review, replaced

    @staticmethod
    def update(
        db: Session,
        review_id: str,
        rating: Any = None,
        comment: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Change rating and/or comment on both copies of a review."""
        changes: Dict[str, Any] = {}
        if rating is not None:
            changes["rating"] = ReviewLedger.validate_rating(rating)
        if comment is not None:
            changes["comment"] = comment
        if not changes:
            raise ValidationFailed("No valid fields to update")

        item, entry = ReviewLedger.find_item_review(db, review_id)
        if item is None:
            raise ReviewNotFound()

        username = entry.get("username")
        item_key = item.id
        item_name = item.name
        rating_changed = "rating" in changes and changes["rating"] != entry.get("rating")

        item.reviews = _with_changes(item.reviews, review_id, changes)
        save_document(db, item)

        user = db.query(User).filter(User.username == username).first()
        if user is None or not any(_is_entry(e, review_id) for e in user.reviews or []):
            logger.warning("review_mirror_missing", review_id=review_id, side="user", username=username)
        else:
            user.reviews = _with_changes(user.reviews, review_id, changes)
            save_document(db, user)

        if rating_changed:
            ReviewLedger.reaggregate_item(db, item_key)
            ReviewLedger.reaggregate_user(db, username)

        logger.info(
            "review_updated",
            review_id=review_id,
            item_id=item_key,
            fields=sorted(changes),
            rating_changed=rating_changed,
        )

        updated = {**entry, **changes}
        return {
            "id": review_id,
            "item_id": item_key,
            "item_name": item_name,
            "username": username,
            "rating": updated.get("rating"),
            "comment": updated.get("comment", ""),
            "created_at": updated.get("created_at"),
        }

    @staticmethod
    def delete(db: Session, review_id: str) -> Dict[str, Any]:
        """Remove both copies of a review and re-aggregate both owners."""
        item, entry = ReviewLedger.find_item_review(db, review_id)
        if item is None:
            raise ReviewNotFound()

        username = entry.get("username")
        item_key = item.id
        user = db.query(User).filter(User.username == username).first()

        ReviewLedger._detach(db, item, user, review_id)

        ReviewLedger.reaggregate_item(db, item_key)
        ReviewLedger.reaggregate_user(db, username)

        logger.info("review_deleted", review_id=review_id, item_id=item_key, username=username)
        return {**entry, "item_id": item_key}

    @staticmethod
    def get(db: Session, review_id: str) -> Dict[str, Any]:
        item, entry = ReviewLedger.find_item_review(db, review_id)
        if item is not None:
            return {**entry, "item_id": item.id, "item_name": item.name}

        user, entry = ReviewLedger.find_user_review(db, review_id)
        if user is not None:
            return {**entry, "username": user.username}

        raise ReviewNotFound()

    @staticmethod
    def list_reviews(
        db: Session,
        item_id: Optional[int] = None,
        username: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Page through the reviews of one item or of one user."""
        if (item_id is None) == (username is None):
            raise ValidationFailed("Please filter by either itemId or username, not both")

        if item_id is not None:
            document = db.query(Item).filter(Item.id == item_id).first()
        else:
            document = db.query(User).filter(User.username == username).first()

        reviews = list(document.reviews or []) if document else []
        offset = (page - 1) * limit
        return reviews[offset:offset + limit], len(reviews)

    # ------------------------------------------------------------------
    # Bulk detach, used by cascade deletion
    # ------------------------------------------------------------------

    @staticmethod
    def delete_all_for_item(db: Session, item: Item) -> Set[str]:
        """
        Pull every user-side copy of the item's reviews.

        Returns the distinct usernames touched; the caller re-aggregates each
        of them once, after the item itself is gone.
        """
        item_key = item.id
        affected: Set[str] = set()

        for entry in list(item.reviews or []):
            if not isinstance(entry, dict) or not entry.get("username"):
                continue
            username = entry["username"]
            if username in affected:
                continue

            user = db.query(User).filter(User.username == username).first()
            if user is None:
                logger.warning("review_mirror_missing", review_id=entry.get("id"), side="user", username=username)
                continue

            user.reviews = [e for e in user.reviews or [] if not _is_for_item(e, item_key)]
            user.review_count = len(user.reviews)
            save_document(db, user)
            affected.add(username)

        return affected

    @staticmethod
    def delete_all_for_user(db: Session, user: User) -> Set[int]:
        """
        Pull every item-side copy of the user's reviews.

        Returns the distinct item ids touched; the caller re-aggregates each
        of them once, after the user itself is gone.
        """
        username = user.username
        affected: Set[int] = set()

        for entry in list(user.reviews or []):
            if not isinstance(entry, dict):
                continue
            try:
                item_key = int(entry.get("item_id"))
            except (TypeError, ValueError):
                continue
            if item_key in affected:
                continue

            item = db.query(Item).filter(Item.id == item_key).first()
            if item is None:
                logger.warning("review_mirror_missing", review_id=entry.get("id"), side="item", item_id=item_key)
                continue

            item.reviews = [e for e in item.reviews or [] if not _is_by_user(e, username)]
            item.review_count = len(item.reviews)
            save_document(db, item)
            affected.add(item_key)

        return affected
