from __future__ import annotations

import logging
import uuid
from typing import Any, Final

from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.references import NOT_FOUND, EntityKind, EntityRef, NotFoundType
from ...crud.entity import EntityRepository
from ...domain.ports.authz import EntityStore

logger = logging.getLogger("chardb.authz.community")

# Each kind names the foreign key to follow and the kind it points at.
# Walking the hops ends at a community row. This table is the only place
# that knows how an entity belongs to a community.
COMMUNITY_CHAINS: Final[dict[EntityKind, tuple[str, EntityKind]]] = {
    EntityKind.CHARACTER: ("species_id", EntityKind.SPECIES),
    EntityKind.SPECIES: ("community_id", EntityKind.COMMUNITY),
    EntityKind.SPECIES_VARIANT: ("species_id", EntityKind.SPECIES),
    EntityKind.TRAIT: ("species_id", EntityKind.SPECIES),
    EntityKind.ENUM_VALUE: ("trait_id", EntityKind.TRAIT),
    EntityKind.ENUM_VALUE_SETTING: ("species_variant_id", EntityKind.SPECIES_VARIANT),
    EntityKind.TRAIT_LIST_ENTRY: ("species_variant_id", EntityKind.SPECIES_VARIANT),
    EntityKind.COMMUNITY_MEMBER: ("role_id", EntityKind.ROLE),
    EntityKind.COMMUNITY_INVITATION: ("community_id", EntityKind.COMMUNITY),
    EntityKind.ROLE: ("community_id", EntityKind.COMMUNITY),
    EntityKind.ITEM_TYPE: ("community_id", EntityKind.COMMUNITY),
    EntityKind.ITEM: ("item_type_id", EntityKind.ITEM_TYPE),
}


def is_resolvable(kind: EntityKind) -> bool:
    return kind is EntityKind.COMMUNITY or kind in COMMUNITY_CHAINS


class CommunityResolver:
    """Resolve any community-scoped entity to the community that owns it.

    ``resolve`` has three outcomes:

    - the community row
    - ``None`` when a link in the chain is null (e.g. a character without a species)
    - ``NOT_FOUND`` when any row along the chain does not exist
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        *,
        entities: EntityStore | None = None,
    ):
        self.entities = entities if entities is not None else EntityRepository(session)

    async def resolve(self, ref: EntityRef) -> Any | None | NotFoundType:
        if not is_resolvable(ref.kind):
            raise ValueError(f"Entity kind '{ref.kind}' has no community resolution")

        kind, entity_id = ref.kind, ref.id
        while kind is not EntityKind.COMMUNITY:
            fk_attr, next_kind = COMMUNITY_CHAINS[kind]
            row = await self.entities.get(kind, entity_id)
            if row is None:
                logger.debug("community_resolution_missing kind=%s id=%s", kind.value, entity_id)
                return NOT_FOUND
            next_id = getattr(row, fk_attr, None)
            if next_id is None:
                logger.debug(
                    "community_resolution_unscoped kind=%s id=%s field=%s",
                    kind.value,
                    entity_id,
                    fk_attr,
                )
                return None
            kind, entity_id = next_kind, next_id

        community = await self.entities.get(EntityKind.COMMUNITY, entity_id)
        if community is None:
            logger.debug("community_resolution_missing kind=community id=%s", entity_id)
            return NOT_FOUND
        return community

    async def resolve_community_id(self, ref: EntityRef) -> uuid.UUID | None | NotFoundType:
        community = await self.resolve(ref)
        if community is None or community is NOT_FOUND:
            return community
        return community.id
