import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.references import EntityKind
from ..models import (
    Character,
    Comment,
    Community,
    CommunityInvitation,
    CommunityMember,
    CommunityRole,
    EnumValue,
    EnumValueSetting,
    Gallery,
    Image,
    Item,
    ItemType,
    Media,
    Species,
    SpeciesVariant,
    Trait,
    TraitListEntry,
    User,
)

MODEL_BY_KIND: dict[EntityKind, type] = {
    EntityKind.COMMUNITY: Community,
    EntityKind.CHARACTER: Character,
    EntityKind.SPECIES: Species,
    EntityKind.SPECIES_VARIANT: SpeciesVariant,
    EntityKind.TRAIT: Trait,
    EntityKind.ENUM_VALUE: EnumValue,
    EntityKind.ENUM_VALUE_SETTING: EnumValueSetting,
    EntityKind.TRAIT_LIST_ENTRY: TraitListEntry,
    EntityKind.COMMUNITY_MEMBER: CommunityMember,
    EntityKind.COMMUNITY_INVITATION: CommunityInvitation,
    EntityKind.ROLE: CommunityRole,
    EntityKind.ITEM_TYPE: ItemType,
    EntityKind.ITEM: Item,
    EntityKind.MEDIA: Media,
    EntityKind.GALLERY: Gallery,
    EntityKind.IMAGE: Image,
    EntityKind.COMMENT: Comment,
    EntityKind.USER: User,
}


class EntityRepository:
    """Primary-key reads for every entity kind the authorization layer walks."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, kind: EntityKind, entity_id: uuid.UUID) -> Any | None:
        model = MODEL_BY_KIND.get(kind)
        if model is None:
            raise ValueError(f"No table registered for entity kind '{kind}'")
        return await self.session.get(model, entity_id)
