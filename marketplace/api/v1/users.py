from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from marketplace.api.deps import get_current_user, require_admin
from marketplace.db.session import get_db
from marketplace.models.user import User
from marketplace.schemas.user import UserCreate, UserDetailResponse, UserResponse
from marketplace.services import cascade
from marketplace.services.user_service import UserService
from marketplace.utils.response import success

router = APIRouter()


@router.get("/", response_model=dict)
def list_users(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List all users. Password hashes are never returned."""
    users = UserService.list_users(db)
    return success(
        data=[UserResponse.model_validate(user).model_dump() for user in users],
        message="Users retrieved",
    )


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_user(
    user_in: UserCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = UserService.create_user(db, user_in)
    return success(data=UserResponse.model_validate(user).model_dump(), message="User created successfully")


@router.get("/me", response_model=dict)
def get_current_user_profile(current_user: User = Depends(get_current_user)):
    """Profile of the logged-in user, with the reviews they have written"""
    return success(data=UserDetailResponse.model_validate(current_user).model_dump(), message="User profile retrieved")


@router.get("/{username}", response_model=dict)
def get_user(
    username: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = UserService.get_user(db, username)
    return success(data=UserDetailResponse.model_validate(user).model_dump(), message="User retrieved")


@router.delete("/{username}", response_model=dict)
def delete_user(
    username: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete a user and pull their reviews from every reviewed item."""
    affected_items = cascade.delete_user(db, username)
    return success(
        data={"affected_items": sorted(affected_items)},
        message="User deleted successfully",
    )


@router.delete("/", response_model=dict)
def delete_all_users(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    deleted_count = cascade.delete_all_users(db)
    return success(data={"deleted_count": deleted_count}, message="All users deleted successfully")
