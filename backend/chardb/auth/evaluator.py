from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..domain.ports.authz import EntityStore, MembershipStore, PrincipalData, PrincipalStore
from ..errors import AuthError, MisconfigurationError, PermissionError
from ..services.authz.community_resolver import CommunityResolver
from ..services.authz.ownership_service import OwnershipService
from ..services.authz.permission_service import CommunityPermissions, PermissionService
from .enforcement_matrix import fields_for, rule_for
from .policies import Policy, PolicyContext, PolicyResult, evaluate_all
from .redaction import redact_fields
from .references import EntityRef, NotFoundType, OwnershipRef

logger = logging.getLogger("chardb.authz")


async def evaluate(
    ctx: PolicyContext,
    policies: Sequence[Policy],
    *,
    public: bool = False,
) -> PolicyResult:
    """Single allow/deny decision for one operation.

    An anonymous caller is denied before any policy runs unless the
    operation is public.
    """
    if ctx.principal is None and not public:
        return PolicyResult.anonymous()
    return await evaluate_all(ctx, policies)


class AuthorizationService:
    """Entry point for operation handlers.

    All three lookups share one session. Pass the session the protected
    write will use to read roles and ownership inside the same transaction.
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        *,
        principals: PrincipalStore | None = None,
        memberships: MembershipStore | None = None,
        entities: EntityStore | None = None,
        strict: bool | None = None,
    ):
        self.session = session
        self.permissions = PermissionService(
            session, principals=principals, memberships=memberships
        )
        self.communities = CommunityResolver(session, entities=entities)
        self.ownership = OwnershipService(session, entities=entities)
        self.strict = settings.authz_strict_config if strict is None else strict

    def context(
        self,
        principal: PrincipalData | None,
        raw_args: Mapping[str, Any] | None = None,
        *,
        root: Any = None,
        operation: str | None = None,
    ) -> PolicyContext:
        return PolicyContext(
            principal=principal,
            args=raw_args or {},
            permissions=self.permissions,
            communities=self.communities,
            ownership=self.ownership,
            root=root,
            strict=self.strict,
            operation=operation,
        )

    async def evaluate(
        self,
        principal: PrincipalData | None,
        policies: Sequence[Policy],
        raw_args: Mapping[str, Any] | None = None,
        *,
        root: Any = None,
        public: bool = False,
        operation: str | None = None,
    ) -> PolicyResult:
        ctx = self.context(principal, raw_args, root=root, operation=operation)
        result = await evaluate(ctx, policies, public=public)
        if not result.allowed:
            logger.info(
                "authorization_denied operation=%s principal=%s reason=%s",
                operation or "n/a",
                ctx.principal_id,
                result.reason,
            )
        return result

    async def evaluate_operation(
        self,
        name: str,
        principal: PrincipalData | None,
        raw_args: Mapping[str, Any] | None = None,
        *,
        root: Any = None,
    ) -> PolicyResult:
        try:
            operation_rule = rule_for(name)
        except MisconfigurationError:
            logger.error("authz_misconfigured operation=%s detail=undeclared operation", name)
            if self.strict:
                raise
            return PolicyResult.deny(MisconfigurationError.message)

        return await self.evaluate(
            principal,
            operation_rule.policies,
            raw_args,
            root=root,
            public=operation_rule.public,
            operation=name,
        )

    @staticmethod
    def raise_for(result: PolicyResult, operation: str | None = None) -> None:
        """Turn a denial into the caller-safe application error.

        The denial reason is logged but never put on the error.
        """
        if result.allowed:
            return
        logger.warning(
            "authorization_enforced operation=%s reason=%s",
            operation or "n/a",
            result.reason,
        )
        if result.unauthenticated:
            raise AuthError()
        raise PermissionError()

    async def enforce(
        self,
        principal: PrincipalData | None,
        policies: Sequence[Policy],
        raw_args: Mapping[str, Any] | None = None,
        *,
        root: Any = None,
        public: bool = False,
        operation: str | None = None,
    ) -> None:
        result = await self.evaluate(
            principal, policies, raw_args, root=root, public=public, operation=operation
        )
        self.raise_for(result, operation)

    async def enforce_operation(
        self,
        name: str,
        principal: PrincipalData | None,
        raw_args: Mapping[str, Any] | None = None,
        *,
        root: Any = None,
    ) -> None:
        result = await self.evaluate_operation(name, principal, raw_args, root=root)
        self.raise_for(result, name)

    async def redact(
        self,
        principal: PrincipalData | None,
        type_name: str,
        obj: Mapping[str, Any],
    ) -> dict[str, Any]:
        return await redact_fields(self, principal, obj, fields_for(type_name), type_name=type_name)

    async def resolve_community(self, ref: EntityRef) -> Any | None | NotFoundType:
        return await self.communities.resolve(ref)

    async def is_owner(self, ref: OwnershipRef, principal_id: uuid.UUID | None) -> bool:
        return await self.ownership.is_owner(ref, principal_id)

    async def aggregate_community_permissions(
        self,
        principal_id: uuid.UUID | None,
        community_id: uuid.UUID | None,
    ) -> CommunityPermissions:
        return await self.permissions.aggregate_community_permissions(principal_id, community_id)
