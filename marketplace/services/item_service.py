from sqlalchemy.orm import Session
from pydantic import ValidationError
from typing import List, Optional, Tuple
import structlog

from marketplace.core.exceptions import ItemNotFound, ValidationFailed
from marketplace.db.documents import save_document
from marketplace.models.item import Item, ItemType
from marketplace.schemas.item import ITEM_VARIANTS, ItemBase, ItemUpdate

logger = structlog.get_logger()

SORTABLE_FIELDS = {
    "name": Item.name,
    "price": Item.price,
    "rating": Item.rating,
    "review_count": Item.review_count,
    "created_at": Item.created_at,
}


class ItemService:

    @staticmethod
    def create_item(db: Session, item_in: ItemBase) -> Item:
        """Create an item of any variant with empty review state."""
        item = Item(
            name=item_in.name,
            description=item_in.description,
            price=item_in.price,
            seller=item_in.seller,
            image=item_in.image,
            item_type=ItemType(item_in.item_type),
            attributes=item_in.attributes(),
            rating=0.0,
            review_count=0,
            reviews=[],
        )
        db.add(item)
        save_document(db, item)
        db.refresh(item)

        logger.info("item_created", item_id=item.id, item_type=item.item_type.value)
        return item

    @staticmethod
    def get_item(db: Session, item_id: int) -> Item:
        item = db.query(Item).filter(Item.id == item_id).first()
        if not item:
            raise ItemNotFound()
        return item

    @staticmethod
    def list_items(
        db: Session,
        item_type: Optional[ItemType] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        min_rating: Optional[float] = None,
        sort_by: str = "name",
        order: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Item], int]:
        """Filter, sort and paginate the catalogue."""
        sort_column = SORTABLE_FIELDS.get(sort_by)
        if sort_column is None:
            raise ValidationFailed(
                f"Cannot sort by {sort_by}",
                errors=[{"allowed": sorted(SORTABLE_FIELDS)}],
            )

        query = db.query(Item)

        if item_type is not None:
            query = query.filter(Item.item_type == item_type)
        if min_price is not None:
            query = query.filter(Item.price >= min_price)
        if max_price is not None:
            query = query.filter(Item.price <= max_price)
        if min_rating is not None:
            query = query.filter(Item.rating >= min_rating)

        total = query.count()

        ordering = sort_column.asc() if order == "asc" else sort_column.desc()
        items = (
            query.order_by(ordering, Item.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def update_item(db: Session, item_id: int, item_update: ItemUpdate) -> Item:
        """Apply a partial update; type-specific attributes are re-validated."""
        item = ItemService.get_item(db, item_id)

        update_data = item_update.model_dump(exclude_unset=True)
        if not update_data:
            raise ValidationFailed("No changes made to the item")

        new_attributes = {**(item.attributes or {}), **(update_data.pop("attributes", None) or {})}
        candidate = {
            "name": item.name,
            "description": item.description,
            "price": item.price,
            "seller": item.seller,
            "image": item.image,
            **new_attributes,
            **{key: value for key, value in update_data.items() if value is not None},
            "item_type": item.item_type.value,
        }

        variant = ITEM_VARIANTS[item.item_type.value]
        try:
            validated = variant.model_validate(candidate)
        except ValidationError as exc:
            raise ValidationFailed(
                "Invalid item data",
                errors=exc.errors(include_url=False, include_context=False),
            )

        item.name = validated.name
        item.description = validated.description
        item.price = validated.price
        item.seller = validated.seller
        item.image = validated.image
        item.attributes = validated.attributes()
        save_document(db, item)
        db.refresh(item)

        logger.info("item_updated", item_id=item.id, fields=sorted(update_data))
        return item
