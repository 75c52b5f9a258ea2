"""
Policy building blocks for operation-level authorization.

A policy answers one question about one request ("is the caller a member
of the community this species belongs to?") and reports the answer either
as a ``PolicyResult`` or by raising ``PolicyDenied``. Inputs such as the
target entity id are read out of the request arguments while the policy
runs, so a missing argument or a missing row is an ordinary denial.

Global administrators pass every policy: ``Policy.check`` short-circuits
before the policy-specific logic runs.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

from ..errors import MisconfigurationError
from .arguments import get_nested_value, is_present, uses_root
from .permissions import (
    CommunityPermission,
    GlobalPermission,
    validate_community_permission,
    validate_global_permission,
)
from .references import (
    NOT_FOUND,
    EntityKind,
    EntityRef,
    NotFoundType,
    OwnershipKind,
    OwnershipRef,
    coerce_uuid,
)

if TYPE_CHECKING:
    from ..domain.ports.authz import PrincipalData
    from ..services.authz.community_resolver import CommunityResolver
    from ..services.authz.ownership_service import OwnershipService
    from ..services.authz.permission_service import PermissionService

logger = logging.getLogger("chardb.authz")

GENERIC_DENIAL: Final[str] = "Insufficient permissions"
UNAUTHENTICATED: Final[str] = "Authentication required"


@dataclass(frozen=True, slots=True)
class PolicyResult:
    allowed: bool
    reason: str | None = None
    unauthenticated: bool = False

    @classmethod
    def allow(cls) -> PolicyResult:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str | None = None) -> PolicyResult:
        return cls(allowed=False, reason=reason)

    @classmethod
    def anonymous(cls) -> PolicyResult:
        return cls(allowed=False, reason=UNAUTHENTICATED, unauthenticated=True)

    def __bool__(self) -> bool:
        return self.allowed


class PolicyDenied(Exception):
    """Raised by a policy that denies by aborting instead of returning."""

    def __init__(self, reason: str | None = None):
        self.reason = reason
        super().__init__(reason or GENERIC_DENIAL)


@dataclass(slots=True)
class PolicyContext:
    """Everything one evaluation may look at. Built per request, then dropped."""

    principal: PrincipalData | None
    args: Mapping[str, Any]
    permissions: PermissionService
    communities: CommunityResolver
    ownership: OwnershipService
    root: Any = None
    strict: bool = False
    operation: str | None = None

    @property
    def principal_id(self) -> uuid.UUID | None:
        if self.principal is None:
            return None
        return self.principal.id

    def argument(self, path: str) -> Any:
        return get_nested_value(self.args, path, root=self.root)

    def misconfigured(self, detail: str) -> PolicyResult:
        logger.error(
            "authz_misconfigured operation=%s detail=%s",
            self.operation or "n/a",
            detail,
        )
        if self.strict:
            raise MisconfigurationError(details={"operation": self.operation, "detail": detail})
        return PolicyResult.deny(MisconfigurationError.message)


class Policy:
    """Base class. Subclasses implement ``evaluate``; callers use ``check``."""

    async def check(self, ctx: PolicyContext) -> PolicyResult:
        if ctx.permissions.has_global_permission(ctx.principal, GlobalPermission.IS_ADMIN):
            return PolicyResult.allow()
        return await self.evaluate(ctx)

    async def evaluate(self, ctx: PolicyContext) -> PolicyResult:
        raise NotImplementedError

    def __repr__(self) -> str:
        return type(self).__name__


async def evaluate_all(ctx: PolicyContext, policies: Iterable[Policy]) -> PolicyResult:
    """AND over ``policies`` in order, stopping at the first denial.

    A raised ``PolicyDenied`` counts as a denial with its reason. Any other
    exception propagates.
    """
    for policy in policies:
        try:
            result = await policy.check(ctx)
        except PolicyDenied as exc:
            result = PolicyResult.deny(exc.reason)
        if not result.allowed:
            return result
    return PolicyResult.allow()


# Reference keys in lookup order. The first configured key whose argument
# path yields a value decides which entity a policy is about.
COMMUNITY_REFERENCE_KEYS: Final[dict[str, EntityKind]] = {
    "community_id": EntityKind.COMMUNITY,
    "character_id": EntityKind.CHARACTER,
    "species_id": EntityKind.SPECIES,
    "species_variant_id": EntityKind.SPECIES_VARIANT,
    "trait_id": EntityKind.TRAIT,
    "enum_value_id": EntityKind.ENUM_VALUE,
    "enum_value_setting_id": EntityKind.ENUM_VALUE_SETTING,
    "trait_list_entry_id": EntityKind.TRAIT_LIST_ENTRY,
    "community_member_id": EntityKind.COMMUNITY_MEMBER,
    "community_invitation_id": EntityKind.COMMUNITY_INVITATION,
    "role_id": EntityKind.ROLE,
    "item_type_id": EntityKind.ITEM_TYPE,
    "item_id": EntityKind.ITEM,
}

OWNER_REFERENCE_KEYS: Final[dict[str, OwnershipKind]] = {
    "character_id": OwnershipKind.CHARACTER,
    "media_id": OwnershipKind.MEDIA,
    "gallery_id": OwnershipKind.GALLERY,
    "image_id": OwnershipKind.IMAGE,
    "comment_id": OwnershipKind.COMMENT,
    "invitee_of_invitation_id": OwnershipKind.INVITEE_OF_INVITATION,
    "inviter_or_invitee_of_invitation_id": OwnershipKind.INVITER_OR_INVITEE_OF_INVITATION,
}

SELF_REFERENCE_KEY: Final[str] = "user_id"


def _check_resolve_from(
    policy_name: str,
    resolve_from: Mapping[str, str],
    allowed: Iterable[str],
) -> dict[str, str]:
    if not resolve_from:
        raise ValueError(f"{policy_name} needs at least one argument path to resolve from")
    allowed = set(allowed)
    unknown = sorted(set(resolve_from) - allowed)
    if unknown:
        raise ValueError(
            f"{policy_name} cannot resolve from {unknown}. "
            f"Supported keys: {sorted(allowed)}"
        )
    for key, path in resolve_from.items():
        if not isinstance(path, str) or not path:
            raise ValueError(f"{policy_name} argument path for '{key}' must be a non-empty string")
    return dict(resolve_from)


def _select_argument(
    ctx: PolicyContext,
    resolve_from: Mapping[str, str],
    keys: Iterable[str],
) -> tuple[str, Any] | PolicyResult | None:
    """Return ``(key, value)`` for the first configured key with a value."""
    for key in keys:
        path = resolve_from.get(key)
        if path is None:
            continue
        if uses_root(path) and ctx.root is None:
            return ctx.misconfigured(f"path '{path}' needs a parent object")
        value = ctx.argument(path)
        if is_present(value):
            return key, value
    return None


class Authenticated(Policy):
    async def evaluate(self, ctx: PolicyContext) -> PolicyResult:
        if ctx.principal is None:
            return PolicyResult.anonymous()
        return PolicyResult.allow()


class GlobalAdmin(Policy):
    """Passes only through the administrator short-circuit in ``check``."""

    async def evaluate(self, ctx: PolicyContext) -> PolicyResult:
        return PolicyResult.deny("Administrator required")


class GlobalPermissionPolicy(Policy):
    """Denies by raising, so it can stand alone or sit inside ``AnyOf``."""

    def __init__(self, permission: GlobalPermission | str):
        self.permission = validate_global_permission(permission)

    async def evaluate(self, ctx: PolicyContext) -> PolicyResult:
        if not ctx.permissions.has_global_permission(ctx.principal, self.permission):
            raise PolicyDenied(f"Missing global permission {self.permission.value}")
        return PolicyResult.allow()

    def __repr__(self) -> str:
        return f"GlobalPermissionPolicy({self.permission.value})"


class CommunityPermissionPolicy(Policy):
    """Require a flag in the community that the referenced entity belongs to.

    Usage::

        CommunityPermissionPolicy(CommunityPermission.CAN_EDIT_SPECIES, species_id="id")
        CommunityPermissionPolicy(
            CommunityPermission.CAN_CREATE_SPECIES,
            community_id="input.community_id",
        )
    """

    def __init__(self, permission: CommunityPermission | str, **resolve_from: str):
        self.permission = validate_community_permission(permission)
        self.resolve_from = _check_resolve_from(
            "CommunityPermissionPolicy", resolve_from, COMMUNITY_REFERENCE_KEYS
        )

    async def evaluate(self, ctx: PolicyContext) -> PolicyResult:
        selected = _select_argument(ctx, self.resolve_from, COMMUNITY_REFERENCE_KEYS)
        if isinstance(selected, PolicyResult):
            return selected
        if selected is None:
            return PolicyResult.deny("Missing entity reference")

        key, value = selected
        entity_id = coerce_uuid(value)
        if entity_id is None:
            return PolicyResult.deny("Entity not found")

        community = await ctx.communities.resolve(
            EntityRef(COMMUNITY_REFERENCE_KEYS[key], entity_id)
        )
        if community is NOT_FOUND:
            return PolicyResult.deny("Entity not found")
        if community is None:
            return PolicyResult.deny("Entity does not belong to a community")

        permissions = await ctx.permissions.aggregate_community_permissions(
            ctx.principal_id, community.id
        )
        if permissions.has(self.permission):
            return PolicyResult.allow()
        return PolicyResult.deny(f"Missing community permission {self.permission.value}")

    def __repr__(self) -> str:
        return f"CommunityPermissionPolicy({self.permission.value})"


class EntityOwnerPolicy(Policy):
    """Require the caller to own the referenced entity.

    ``user_id`` compares against the caller's own id instead of a stored
    owner field.
    """

    def __init__(self, **resolve_from: str):
        self.resolve_from = _check_resolve_from(
            "EntityOwnerPolicy",
            resolve_from,
            [*OWNER_REFERENCE_KEYS, SELF_REFERENCE_KEY],
        )

    async def evaluate(self, ctx: PolicyContext) -> PolicyResult:
        selected = _select_argument(
            ctx, self.resolve_from, [*OWNER_REFERENCE_KEYS, SELF_REFERENCE_KEY]
        )
        if isinstance(selected, PolicyResult):
            return selected
        if selected is None:
            return PolicyResult.deny("Missing entity reference")

        key, value = selected
        entity_id = coerce_uuid(value)
        if entity_id is None:
            return PolicyResult.deny("Entity not found")

        if key == SELF_REFERENCE_KEY:
            owned = ctx.permissions.is_self(ctx.principal_id, entity_id)
        else:
            owned = await ctx.ownership.is_owner(
                OwnershipRef(OWNER_REFERENCE_KEYS[key], entity_id), ctx.principal_id
            )
        if owned:
            return PolicyResult.allow()
        return PolicyResult.deny("Not the owner")


class SelfPolicy(Policy):
    """Require the caller to be the user identified by ``user_id``."""

    def __init__(self, user_id: str = "$root.id"):
        if not user_id:
            raise ValueError("SelfPolicy needs an argument path")
        self.path = user_id

    async def evaluate(self, ctx: PolicyContext) -> PolicyResult:
        if uses_root(self.path) and ctx.root is None:
            return ctx.misconfigured(f"path '{self.path}' needs a parent object")
        target = coerce_uuid(ctx.argument(self.path))
        if ctx.permissions.is_self(ctx.principal_id, target):
            return PolicyResult.allow()
        return PolicyResult.deny("Not the same user")


# Ownership-branching entities: the ownership kind plus the entity kind
# used for community resolution
_BRANCHABLE: Final[dict[EntityKind, OwnershipKind]] = {
    EntityKind.CHARACTER: OwnershipKind.CHARACTER,
}


@dataclass(frozen=True)
class _Grants:
    own: tuple[CommunityPermission, ...] = field(default_factory=tuple)
    any: tuple[CommunityPermission, ...] = field(default_factory=tuple)
    orphaned: tuple[CommunityPermission, ...] = field(default_factory=tuple)


def _flags(values: Sequence[CommunityPermission | str]) -> tuple[CommunityPermission, ...]:
    return tuple(validate_community_permission(value) for value in values)


class OwnershipBranchPolicy(Policy):
    """Pick the permission to require based on who owns the entity.

    1. No community (a null link in the chain): only the owner passes and
       no flag is consulted.
    2. No owner: any of ``orphaned`` or ``any`` is required.
    3. Owner: any of ``own`` or ``any`` is required.
    4. Anyone else: any of ``any`` is required.

    Administrators pass through ``check`` before any of this runs.
    """

    def __init__(
        self,
        kind: EntityKind,
        path: str,
        *,
        own: Sequence[CommunityPermission | str] = (),
        any: Sequence[CommunityPermission | str] = (),
        orphaned: Sequence[CommunityPermission | str] = (),
    ):
        if kind not in _BRANCHABLE:
            raise ValueError(f"Ownership branching is not supported for '{kind}'")
        if not path:
            raise ValueError("OwnershipBranchPolicy needs an argument path")
        self.kind = kind
        self.ownership_kind = _BRANCHABLE[kind]
        self.path = path
        self.grants = _Grants(own=_flags(own), any=_flags(any), orphaned=_flags(orphaned))
        if not self.grants.any:
            raise ValueError("OwnershipBranchPolicy needs at least one any-scoped permission")

    async def evaluate(self, ctx: PolicyContext) -> PolicyResult:
        if uses_root(self.path) and ctx.root is None:
            return ctx.misconfigured(f"path '{self.path}' needs a parent object")
        raw = ctx.argument(self.path)
        if not is_present(raw):
            return PolicyResult.deny("Missing entity reference")
        entity_id = coerce_uuid(raw)
        if entity_id is None:
            return PolicyResult.deny("Entity not found")

        owner_id: uuid.UUID | None | NotFoundType = await ctx.ownership.resolve_entity_owner(
            OwnershipRef(self.ownership_kind, entity_id)
        )
        if owner_id is NOT_FOUND:
            return PolicyResult.deny("Entity not found")

        community = await ctx.communities.resolve(EntityRef(self.kind, entity_id))
        if community is NOT_FOUND:
            return PolicyResult.deny("Entity not found")

        is_owner = owner_id is not None and owner_id == ctx.principal_id

        if community is None:
            if is_owner:
                return PolicyResult.allow()
            return PolicyResult.deny("Only the owner may act on an unscoped entity")

        if owner_id is None:
            required = self.grants.orphaned + self.grants.any
        elif is_owner:
            required = self.grants.own + self.grants.any
        else:
            required = self.grants.any

        permissions = await ctx.permissions.aggregate_community_permissions(
            ctx.principal_id, community.id
        )
        if any(permissions.has(flag) for flag in required):
            return PolicyResult.allow()
        return PolicyResult.deny(
            "Missing community permission " + " or ".join(flag.value for flag in required)
        )

    def __repr__(self) -> str:
        return f"OwnershipBranchPolicy({self.kind.value}, {self.path!r})"


def character_profile_editor(path: str = "id") -> OwnershipBranchPolicy:
    return OwnershipBranchPolicy(
        EntityKind.CHARACTER,
        path,
        own=(CommunityPermission.CAN_EDIT_OWN_CHARACTER,),
        any=(CommunityPermission.CAN_EDIT_CHARACTER,),
        orphaned=(CommunityPermission.CAN_CREATE_ORPHANED_CHARACTER,),
    )


def character_registry_editor(path: str = "id") -> OwnershipBranchPolicy:
    return OwnershipBranchPolicy(
        EntityKind.CHARACTER,
        path,
        own=(CommunityPermission.CAN_EDIT_OWN_CHARACTER_REGISTRY,),
        any=(CommunityPermission.CAN_EDIT_CHARACTER_REGISTRY,),
        orphaned=(CommunityPermission.CAN_CREATE_ORPHANED_CHARACTER,),
    )


def character_editor(path: str = "id") -> OwnershipBranchPolicy:
    """Either profile or registry editing rights."""
    return OwnershipBranchPolicy(
        EntityKind.CHARACTER,
        path,
        own=(
            CommunityPermission.CAN_EDIT_OWN_CHARACTER,
            CommunityPermission.CAN_EDIT_OWN_CHARACTER_REGISTRY,
        ),
        any=(
            CommunityPermission.CAN_EDIT_CHARACTER,
            CommunityPermission.CAN_EDIT_CHARACTER_REGISTRY,
        ),
        orphaned=(CommunityPermission.CAN_CREATE_ORPHANED_CHARACTER,),
    )


def character_image_uploader(path: str = "character_id") -> OwnershipBranchPolicy:
    return OwnershipBranchPolicy(
        EntityKind.CHARACTER,
        path,
        own=(CommunityPermission.CAN_UPLOAD_OWN_CHARACTER_IMAGES,),
        any=(CommunityPermission.CAN_UPLOAD_CHARACTER_IMAGES,),
    )
