from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.permissions import (
    COMMUNITY_PERMISSION_FLAGS,
    CommunityPermission,
    GlobalPermission,
    validate_community_permission,
    validate_global_permission,
)
from ...crud.community_member import CommunityMemberRepository
from ...crud.user import UserRepository
from ...domain.ports.authz import MembershipStore, PrincipalData, PrincipalStore, RoleData

logger = logging.getLogger("chardb.authz.permissions")


@dataclass(frozen=True, slots=True)
class CommunityPermissions:
    """Effective community flags of one principal, OR-ed across all held roles."""

    flags: Mapping[CommunityPermission, bool] = field(
        default_factory=lambda: MappingProxyType({flag: False for flag in COMMUNITY_PERMISSION_FLAGS})
    )
    has_membership: bool = False

    def __getitem__(self, permission: CommunityPermission | str) -> bool:
        flag = validate_community_permission(permission)
        if flag is CommunityPermission.ANY:
            return self.has_membership
        return self.flags.get(flag, False)

    def has(self, permission: CommunityPermission | str) -> bool:
        try:
            return self[permission]
        except ValueError:
            return False

    def as_dict(self) -> dict[str, bool]:
        result = {flag.value: self.flags.get(flag, False) for flag in COMMUNITY_PERMISSION_FLAGS}
        result["has_membership"] = self.has_membership
        return result


def aggregate_roles(roles: list[RoleData]) -> CommunityPermissions:
    """Single pass over the declared flags: a flag is granted if any role grants it."""
    granted = {
        flag: any(getattr(role, flag.value, False) is True for role in roles)
        for flag in COMMUNITY_PERMISSION_FLAGS
    }
    return CommunityPermissions(
        flags=MappingProxyType(granted),
        has_membership=len(roles) > 0,
    )


class PermissionService:
    """Reads principals and community roles and answers flag questions.

    Every answer is fail-closed: unknown principals, communities or flag
    names produce ``False`` instead of an error.
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        *,
        principals: PrincipalStore | None = None,
        memberships: MembershipStore | None = None,
    ):
        self.session = session
        self.principals = principals if principals is not None else UserRepository(session)
        self.memberships = (
            memberships if memberships is not None else CommunityMemberRepository(session)
        )

    async def get_principal(self, principal_id: uuid.UUID | None) -> PrincipalData | None:
        if principal_id is None:
            return None
        return await self.principals.get_by_id(principal_id)

    async def aggregate_community_permissions(
        self,
        principal_id: uuid.UUID | None,
        community_id: uuid.UUID | None,
    ) -> CommunityPermissions:
        """Get the OR-aggregate of every role the principal holds in a community.

        Args:
            principal_id: The principal to aggregate for
            community_id: The community whose roles are considered

        Returns:
            CommunityPermissions: All flags False and no membership when the
            principal holds no role there (or either id is missing)
        """
        if principal_id is None or community_id is None:
            return CommunityPermissions()

        roles = await self.memberships.get_user_roles_in_community(principal_id, community_id)
        permissions = aggregate_roles(roles)
        logger.debug(
            "community_permissions_aggregated principal=%s community=%s roles=%s",
            principal_id,
            community_id,
            len(roles),
        )
        return permissions

    async def has_community_permission(
        self,
        principal_id: uuid.UUID | None,
        community_id: uuid.UUID | None,
        permission: CommunityPermission | str,
    ) -> bool:
        try:
            flag = validate_community_permission(permission)
        except ValueError:
            logger.warning("unknown_community_permission permission=%s", permission)
            return False

        permissions = await self.aggregate_community_permissions(principal_id, community_id)
        return permissions[flag]

    def has_global_permission(
        self,
        principal: PrincipalData | Any | None,
        permission: GlobalPermission | str,
    ) -> bool:
        try:
            flag = validate_global_permission(permission)
        except ValueError:
            logger.warning("unknown_global_permission permission=%s", permission)
            return False

        if principal is None:
            return False
        return getattr(principal, flag.value, False) is True

    @staticmethod
    def is_self(principal_id: uuid.UUID | None, target_user_id: uuid.UUID | None) -> bool:
        if principal_id is None or target_user_id is None:
            return False
        return principal_id == target_user_id
