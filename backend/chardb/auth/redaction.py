"""
Field-level redaction.

A field whose policy denies keeps the object readable but comes back as the
field's natural empty value (``""``, ``None`` or ``False``). Resolution first
swaps the field for a ``Redacted`` placeholder; ``strip_redactions`` turns
placeholders into their empty values before the payload leaves the service.
Callers should go through ``redact_fields``, which does both steps.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .policies import Policy, PolicyContext, evaluate_all

if TYPE_CHECKING:
    from .evaluator import AuthorizationService

logger = logging.getLogger("chardb.authz.redaction")


class Redacted:
    """Placeholder for a denied field. Truthy so it is never mistaken for a value."""

    __slots__ = ("empty",)

    def __init__(self, empty: Any):
        self.empty = empty

    def __bool__(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Redacted({self.empty!r})"


@dataclass(frozen=True)
class FieldRule:
    policies: tuple[Policy, ...]
    empty: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "policies", tuple(self.policies))


async def resolve_redactable(
    ctx: PolicyContext,
    policies: Sequence[Policy],
    value: Any,
    empty: Any,
) -> Any:
    if ctx.principal is None:
        return Redacted(empty)
    result = await evaluate_all(ctx, policies)
    if result.allowed:
        return value
    logger.debug(
        "field_redacted field=%s principal=%s reason=%s",
        ctx.operation or "n/a",
        ctx.principal_id,
        result.reason,
    )
    return Redacted(empty)


def strip_redactions(payload: Any) -> Any:
    if isinstance(payload, Redacted):
        return payload.empty
    if isinstance(payload, Mapping):
        return {key: strip_redactions(value) for key, value in payload.items()}
    if isinstance(payload, list):
        return [strip_redactions(value) for value in payload]
    if isinstance(payload, tuple):
        return tuple(strip_redactions(value) for value in payload)
    return payload


async def redact_fields(
    service: AuthorizationService,
    principal: Any,
    obj: Mapping[str, Any],
    fields: Mapping[str, FieldRule],
    *,
    type_name: str | None = None,
) -> dict[str, Any]:
    """Apply field rules to one object and return a payload safe to emit."""
    payload = dict(obj)
    for name, rule in fields.items():
        if name not in payload:
            continue
        label = f"{type_name}.{name}" if type_name else name
        ctx = service.context(principal, {}, root=obj, operation=label)
        payload[name] = await resolve_redactable(ctx, rule.policies, payload[name], rule.empty)
    return strip_redactions(payload)
