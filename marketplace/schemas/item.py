from pydantic import BaseModel, Field, field_validator
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Tuple, Union
from datetime import datetime


class ItemBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    seller: str = Field(..., min_length=1, max_length=100)
    image: str = Field(..., min_length=1, max_length=500)

    # Names of the fields stored in Item.attributes for this variant
    TYPE_FIELDS: ClassVar[Tuple[str, ...]] = ()

    @field_validator("name", "seller", "description", "image")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Field cannot be blank")
        return value

    def attributes(self) -> Dict[str, Any]:
        return self.model_dump(include=set(self.TYPE_FIELDS))


class VinylCreate(ItemBase):
    item_type: Literal["vinyl"]
    age: int = Field(..., ge=0, description="Age in years")

    TYPE_FIELDS: ClassVar[Tuple[str, ...]] = ("age",)


class AntiqueFurnitureCreate(ItemBase):
    item_type: Literal["antique_furniture"]
    age: int = Field(..., ge=0, description="Age in years")
    material: str = Field(..., min_length=1, max_length=100)

    TYPE_FIELDS: ClassVar[Tuple[str, ...]] = ("age", "material")


class GPSSportsWatchCreate(ItemBase):
    item_type: Literal["gps_sports_watch"]
    battery_life: float = Field(..., ge=0, le=100, description="Battery life in percent")

    TYPE_FIELDS: ClassVar[Tuple[str, ...]] = ("battery_life",)


class RunningShoesCreate(ItemBase):
    item_type: Literal["running_shoes"]
    size: float = Field(..., gt=0)
    material: str = Field(..., min_length=1, max_length=100)

    TYPE_FIELDS: ClassVar[Tuple[str, ...]] = ("size", "material")


ItemCreate = Annotated[
    Union[VinylCreate, AntiqueFurnitureCreate, GPSSportsWatchCreate, RunningShoesCreate],
    Field(discriminator="item_type"),
]

ITEM_VARIANTS = {
    "vinyl": VinylCreate,
    "antique_furniture": AntiqueFurnitureCreate,
    "gps_sports_watch": GPSSportsWatchCreate,
    "running_shoes": RunningShoesCreate,
}


class ItemUpdate(BaseModel):
    """Partial update. `item_type` is not accepted and is dropped if sent."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    seller: Optional[str] = Field(None, min_length=1, max_length=100)
    image: Optional[str] = Field(None, max_length=500)
    attributes: Optional[Dict[str, Any]] = None


class ItemListResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    price: float
    seller: str
    image: Optional[str]
    item_type: str
    attributes: Dict[str, Any]
    rating: float
    review_count: int
    created_at: Optional[datetime] = None

    @field_validator("item_type", mode="before")
    @classmethod
    def enum_value(cls, value):
        return getattr(value, "value", value)

    class Config:
        from_attributes = True


class ItemDetailResponse(ItemListResponse):
    reviews: List[Dict[str, Any]]

    class Config:
        from_attributes = True
