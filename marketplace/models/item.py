from sqlalchemy import Column, Integer, String, Float, DateTime, Text, Enum, JSON, Index
from datetime import datetime
import enum
from marketplace.db.base_class import Base


class ItemType(str, enum.Enum):
    VINYL = "vinyl"
    ANTIQUE_FURNITURE = "antique_furniture"
    GPS_SPORTS_WATCH = "gps_sports_watch"
    RUNNING_SHOES = "running_shoes"


class Item(Base):
    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    seller = Column(String(100), nullable=False)
    image = Column(String(500), nullable=True)

    item_type = Column(Enum(ItemType), nullable=False, index=True)
    # Type-specific fields (age, material, battery_life, size)
    attributes = Column(JSON, default=dict, nullable=False)

    # Ratings, derived from `reviews`
    rating = Column(Float, default=0.0, nullable=False)
    review_count = Column(Integer, default=0, nullable=False)

    # Embedded review-on-item entries:
    # {"id", "username", "rating", "comment", "created_at"}
    reviews = Column(JSON, default=list, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


Index('idx_item_type_price', Item.item_type, Item.price)
