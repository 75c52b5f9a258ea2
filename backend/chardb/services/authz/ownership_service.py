from __future__ import annotations

import uuid
from typing import Final

from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.references import NOT_FOUND, EntityKind, OwnershipKind, OwnershipRef, NotFoundType
from ...crud.entity import EntityRepository
from ...domain.ports.authz import EntityStore

# Ownership kind -> (table, fields that identify an owner)
OWNER_FIELDS: Final[dict[OwnershipKind, tuple[EntityKind, tuple[str, ...]]]] = {
    OwnershipKind.CHARACTER: (EntityKind.CHARACTER, ("owner_id",)),
    OwnershipKind.MEDIA: (EntityKind.MEDIA, ("owner_id",)),
    OwnershipKind.GALLERY: (EntityKind.GALLERY, ("owner_id",)),
    OwnershipKind.IMAGE: (EntityKind.IMAGE, ("uploader_id",)),
    OwnershipKind.COMMENT: (EntityKind.COMMENT, ("author_id",)),
    OwnershipKind.INVITEE_OF_INVITATION: (EntityKind.COMMUNITY_INVITATION, ("invitee_id",)),
    OwnershipKind.INVITER_OR_INVITEE_OF_INVITATION: (
        EntityKind.COMMUNITY_INVITATION,
        ("inviter_id", "invitee_id"),
    ),
}


class OwnershipService:
    def __init__(
        self,
        session: AsyncSession | None = None,
        *,
        entities: EntityStore | None = None,
    ):
        self.entities = entities if entities is not None else EntityRepository(session)

    async def is_owner(self, ref: OwnershipRef, principal_id: uuid.UUID | None) -> bool:
        """True when the principal fills one of the entity's owner fields.

        A missing entity or a missing principal is simply "not the owner".
        """
        if principal_id is None:
            return False

        table, owner_fields = OWNER_FIELDS[ref.kind]
        row = await self.entities.get(table, ref.id)
        if row is None:
            return False
        return any(getattr(row, name, None) == principal_id for name in owner_fields)

    async def resolve_entity_owner(self, ref: OwnershipRef) -> uuid.UUID | None | NotFoundType:
        """Return the primary owner id, ``None`` for an orphan, or ``NOT_FOUND``."""
        table, owner_fields = OWNER_FIELDS[ref.kind]
        row = await self.entities.get(table, ref.id)
        if row is None:
            return NOT_FOUND
        return getattr(row, owner_fields[0], None)
