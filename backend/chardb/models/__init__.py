from .base import Base
from .user import User
from .community import Community, CommunityInvitation, CommunityMember, CommunityRole
from .species import (
    EnumValue,
    EnumValueSetting,
    Species,
    SpeciesVariant,
    Trait,
    TraitListEntry,
)
from .character import Character
from .media import Gallery, Image, Media
from .comment import Comment
from .item import Item, ItemType

__all__ = [
    "Base",
    "User",
    "Community",
    "CommunityRole",
    "CommunityMember",
    "CommunityInvitation",
    "Species",
    "SpeciesVariant",
    "Trait",
    "EnumValue",
    "EnumValueSetting",
    "TraitListEntry",
    "Character",
    "Media",
    "Gallery",
    "Image",
    "Comment",
    "ItemType",
    "Item",
]
