from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from typing import Optional

from marketplace.api.deps import get_current_user
from marketplace.core.rate_limiter import limiter
from marketplace.db.session import get_db
from marketplace.models.user import User
from marketplace.schemas.review import ReviewCreate, ReviewResponse, ReviewUpdate
from marketplace.services.review_ledger import ReviewLedger
from marketplace.utils.response import paginated_response, success

router = APIRouter()


def _ensure_can_modify(db: Session, review_id: str, current_user: User) -> None:
    review = ReviewLedger.get(db, review_id)
    if review.get("username") != current_user.username and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only modify your own reviews",
        )


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def submit_review(
    request: Request,
    review_data: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a review, replacing the caller's earlier review of the same item."""
    if review_data.username != current_user.username:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot create reviews for other users",
        )

    review, replaced = ReviewLedger.submit(
        db,
        item_id=review_data.item_id,
        username=current_user.username,
        rating=review_data.rating,
        comment=review_data.comment,
    )
    return success(
        data=ReviewResponse.model_validate(review).model_dump(),
        message="Review updated successfully" if replaced else "Review created successfully",
    )


@router.get("/", response_model=dict)
def list_reviews(
    item_id: Optional[int] = Query(None),
    username: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Reviews of one item or of one user. Public endpoint."""
    reviews, total = ReviewLedger.list_reviews(db, item_id=item_id, username=username, page=page, limit=limit)
    return paginated_response(reviews, total=total, page=page, limit=limit, message="Reviews retrieved")


@router.get("/{review_id}", response_model=dict)
def get_review(review_id: str, db: Session = Depends(get_db)):
    return success(data=ReviewLedger.get(db, review_id), message="Review retrieved")


@router.put("/{review_id}", response_model=dict)
@limiter.limit("30/minute")
def update_review(
    request: Request,
    review_id: str,
    review_data: ReviewUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update a review. Only the author or an admin can update."""
    _ensure_can_modify(db, review_id, current_user)
    review = ReviewLedger.update(db, review_id, rating=review_data.rating, comment=review_data.comment)
    return success(data=ReviewResponse.model_validate(review).model_dump(), message="Review updated successfully")


@router.delete("/{review_id}", response_model=dict)
@limiter.limit("30/minute")
def delete_review(
    request: Request,
    review_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete a review. Only the author or an admin can delete."""
    _ensure_can_modify(db, review_id, current_user)
    ReviewLedger.delete(db, review_id)
    return success(message="Review deleted successfully")
