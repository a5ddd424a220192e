from marketplace.db.base_class import Base


# IMPORT ALL MODELS HERE (THIS REGISTERS THEM WITH Base.metadata)
from marketplace.models.user import User
from marketplace.models.item import Item
