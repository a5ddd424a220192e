from marketplace.models.user import User
from marketplace.models.item import Item, ItemType
