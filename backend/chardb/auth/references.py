from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Final


class EntityKind(str, Enum):
    COMMUNITY = "community"
    CHARACTER = "character"
    SPECIES = "species"
    SPECIES_VARIANT = "species_variant"
    TRAIT = "trait"
    ENUM_VALUE = "enum_value"
    ENUM_VALUE_SETTING = "enum_value_setting"
    TRAIT_LIST_ENTRY = "trait_list_entry"
    COMMUNITY_MEMBER = "community_member"
    COMMUNITY_INVITATION = "community_invitation"
    ROLE = "role"
    ITEM_TYPE = "item_type"
    ITEM = "item"
    MEDIA = "media"
    GALLERY = "gallery"
    IMAGE = "image"
    COMMENT = "comment"
    USER = "user"


class OwnershipKind(str, Enum):
    """How "owner" is read from an entity row."""

    CHARACTER = "character"
    MEDIA = "media"
    GALLERY = "gallery"
    IMAGE = "image"
    COMMENT = "comment"
    INVITEE_OF_INVITATION = "invitee_of_invitation"
    INVITER_OR_INVITEE_OF_INVITATION = "inviter_or_invitee_of_invitation"


@dataclass(frozen=True, slots=True)
class EntityRef:
    kind: EntityKind
    id: uuid.UUID


class NotFoundType:
    """Marker for "the referenced row does not exist".

    Distinct from ``None``, which means the row exists but has no community
    (or no owner). Falsy so that both read as "no grant" in a boolean context.
    """

    _instance: NotFoundType | None = None

    def __new__(cls) -> NotFoundType:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __copy__(self) -> NotFoundType:
        return self

    def __deepcopy__(self, memo: dict) -> NotFoundType:
        return self


NOT_FOUND: Final[NotFoundType] = NotFoundType()


def coerce_uuid(value: object) -> uuid.UUID | None:
    """Turn an argument value into a UUID, or ``None`` if it is not one."""
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, str) and value:
        try:
            return uuid.UUID(value)
        except ValueError:
            return None
    return None


@dataclass(frozen=True, slots=True)
class OwnershipRef:
    kind: OwnershipKind
    id: uuid.UUID
