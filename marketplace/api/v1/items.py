from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from marketplace.api.deps import require_admin
from marketplace.db.session import get_db
from marketplace.models.item import ItemType
from marketplace.models.user import User
from marketplace.schemas.item import ItemCreate, ItemDetailResponse, ItemListResponse, ItemUpdate
from marketplace.services import cascade
from marketplace.services.item_service import ItemService
from marketplace.utils.response import paginated_response, success

router = APIRouter()


@router.get("/", response_model=dict)
def list_items(
    item_type: Optional[ItemType] = Query(None, alias="type"),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    min_rating: Optional[float] = Query(None, ge=0),
    sort_by: str = Query("name"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Browse the catalogue. Public endpoint."""
    items, total = ItemService.list_items(
        db,
        item_type=item_type,
        min_price=min_price,
        max_price=max_price,
        min_rating=min_rating,
        sort_by=sort_by,
        order=order,
        page=page,
        limit=limit,
    )
    data = [ItemListResponse.model_validate(item).model_dump() for item in items]
    return paginated_response(data, total=total, page=page, limit=limit, message="Items retrieved")


@router.get("/{item_id}", response_model=dict)
def get_item(item_id: int, db: Session = Depends(get_db)):
    """Item detail with its embedded reviews. Public endpoint."""
    item = ItemService.get_item(db, item_id)
    return success(data=ItemDetailResponse.model_validate(item).model_dump(), message="Item retrieved")


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_item(
    item_in: ItemCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create an item. The body shape depends on `item_type`."""
    item = ItemService.create_item(db, item_in)
    return success(data=ItemDetailResponse.model_validate(item).model_dump(), message="Item created successfully")


@router.put("/{item_id}", response_model=dict)
def update_item(
    item_id: int,
    item_update: ItemUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Update an item. The item type cannot be changed."""
    item = ItemService.update_item(db, item_id, item_update)
    return success(data=ItemDetailResponse.model_validate(item).model_dump(), message="Item updated successfully")


@router.delete("/{item_id}", response_model=dict)
def delete_item(
    item_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete an item and pull its reviews from every reviewer."""
    affected_users = cascade.delete_item(db, item_id)
    return success(
        data={"affected_users": sorted(affected_users)},
        message="Item deleted successfully",
    )


@router.delete("/", response_model=dict)
def delete_all_items(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete every item, cascading each one."""
    deleted_count = cascade.delete_all_items(db)
    return success(data={"deleted_count": deleted_count}, message="All items deleted successfully")
