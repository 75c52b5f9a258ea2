from __future__ import annotations

import logging
from collections.abc import Sequence

from ..errors import MisconfigurationError
from .policies import GENERIC_DENIAL, Policy, PolicyContext, PolicyDenied, PolicyResult, evaluate_all

logger = logging.getLogger("chardb.authz.combinator")


async def evaluate_any(ctx: PolicyContext, policies: Sequence[Policy]) -> PolicyResult:
    """Allow on the first policy that passes, trying them in declared order.

    Denials, raised or returned, are collected and the next alternative is
    tried. When all alternatives fail the first collected reason is reported.
    If the first failure was an unexpected exception rather than a denial,
    that exception is re-raised. Misconfiguration is never collected.
    """
    first_reason: str | None = None
    first_failure: Exception | PolicyResult | None = None

    for policy in policies:
        try:
            result = await policy.check(ctx)
        except MisconfigurationError:
            raise
        except PolicyDenied as exc:
            result = PolicyResult.deny(exc.reason)
        except Exception as exc:
            logger.warning(
                "policy_fault operation=%s policy=%r",
                ctx.operation or "n/a",
                policy,
                exc_info=True,
            )
            if first_failure is None:
                first_failure = exc
            continue

        if result.allowed:
            return result
        if first_failure is None:
            first_failure = result
        if first_reason is None and result.reason:
            first_reason = result.reason

    if isinstance(first_failure, Exception):
        raise first_failure
    if isinstance(first_failure, PolicyResult) and first_failure.unauthenticated:
        return first_failure
    return PolicyResult.deny(first_reason or GENERIC_DENIAL)


class AnyOf(Policy):
    """Passes when at least one of its alternatives passes."""

    def __init__(self, *policies: Policy):
        if not policies:
            raise ValueError("AnyOf needs at least one policy")
        self.policies = tuple(policies)

    async def evaluate(self, ctx: PolicyContext) -> PolicyResult:
        return await evaluate_any(ctx, self.policies)

    def __repr__(self) -> str:
        return f"AnyOf({', '.join(repr(policy) for policy in self.policies)})"


class AllOf(Policy):
    """Passes when every one of its policies passes. Useful inside ``AnyOf``."""

    def __init__(self, *policies: Policy):
        if not policies:
            raise ValueError("AllOf needs at least one policy")
        self.policies = tuple(policies)

    async def evaluate(self, ctx: PolicyContext) -> PolicyResult:
        return await evaluate_all(ctx, self.policies)

    def __repr__(self) -> str:
        return f"AllOf({', '.join(repr(policy) for policy in self.policies)})"
