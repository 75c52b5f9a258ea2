from __future__ import annotations

import uuid
from typing import Any, Protocol

from ...auth.references import EntityKind


class PrincipalData(Protocol):
    id: uuid.UUID
    is_admin: bool
    can_create_community: bool
    can_list_users: bool
    can_list_invite_codes: bool
    can_create_invite_code: bool
    can_grant_global_permissions: bool


class RoleData(Protocol):
    id: uuid.UUID
    community_id: uuid.UUID


class PrincipalStore(Protocol):
    async def get_by_id(self, user_id: uuid.UUID) -> PrincipalData | None:
        ...


class MembershipStore(Protocol):
    async def get_user_roles_in_community(
        self, user_id: uuid.UUID, community_id: uuid.UUID
    ) -> list[RoleData]:
        ...


class EntityStore(Protocol):
    async def get(self, kind: EntityKind, entity_id: uuid.UUID) -> Any | None:
        ...
