"""
Permission flag registry for community roles and principals.

Both flag sets are fixed and known ahead of time: community flags are boolean
columns on ``community_roles`` and global flags are boolean columns on
``users``. Aggregation reads them as named attributes, never through an
open-ended string map, so an unknown name is rejected here before it can
reach a lookup.
"""
from __future__ import annotations

from enum import Enum
from typing import Final


class CommunityPermission(str, Enum):
    """Flags granted by a role within a single community."""

    # Reserved: "holds at least one role in the community"
    ANY = "__any__"

    CAN_CREATE_SPECIES = "can_create_species"
    CAN_CREATE_CHARACTER = "can_create_character"
    CAN_CREATE_ORPHANED_CHARACTER = "can_create_orphaned_character"
    CAN_EDIT_CHARACTER = "can_edit_character"
    CAN_EDIT_OWN_CHARACTER = "can_edit_own_character"
    CAN_EDIT_CHARACTER_REGISTRY = "can_edit_character_registry"
    CAN_EDIT_OWN_CHARACTER_REGISTRY = "can_edit_own_character_registry"
    CAN_EDIT_SPECIES = "can_edit_species"
    CAN_CREATE_INVITE_CODE = "can_create_invite_code"
    CAN_LIST_INVITE_CODES = "can_list_invite_codes"
    CAN_CREATE_ROLE = "can_create_role"
    CAN_EDIT_ROLE = "can_edit_role"
    CAN_REMOVE_COMMUNITY_MEMBER = "can_remove_community_member"
    CAN_MANAGE_MEMBER_ROLES = "can_manage_member_roles"
    CAN_MANAGE_ITEMS = "can_manage_items"
    CAN_GRANT_ITEMS = "can_grant_items"
    CAN_UPLOAD_OWN_CHARACTER_IMAGES = "can_upload_own_character_images"
    CAN_UPLOAD_CHARACTER_IMAGES = "can_upload_character_images"
    CAN_MODERATE_IMAGES = "can_moderate_images"


class GlobalPermission(str, Enum):
    """Flags stored directly on the principal."""

    IS_ADMIN = "is_admin"
    CAN_CREATE_COMMUNITY = "can_create_community"
    CAN_LIST_USERS = "can_list_users"
    CAN_LIST_INVITE_CODES = "can_list_invite_codes"
    CAN_CREATE_INVITE_CODE = "can_create_invite_code"
    CAN_GRANT_GLOBAL_PERMISSIONS = "can_grant_global_permissions"


# Every real role column, in declaration order
COMMUNITY_PERMISSION_FLAGS: Final[tuple[CommunityPermission, ...]] = tuple(
    flag for flag in CommunityPermission if flag is not CommunityPermission.ANY
)

GLOBAL_PERMISSION_FLAGS: Final[tuple[GlobalPermission, ...]] = tuple(GlobalPermission)

_COMMUNITY_BY_VALUE: Final[dict[str, CommunityPermission]] = {
    flag.value: flag for flag in CommunityPermission
}
_GLOBAL_BY_VALUE: Final[dict[str, GlobalPermission]] = {
    flag.value: flag for flag in GlobalPermission
}


def validate_community_permission(permission: CommunityPermission | str) -> CommunityPermission:
    """
    Return the enum member for a community flag.

    Raises:
        ValueError: If the name is not a declared community flag
    """
    if isinstance(permission, CommunityPermission):
        return permission
    flag = _COMMUNITY_BY_VALUE.get(permission)
    if flag is None:
        raise ValueError(
            f"Invalid community permission '{permission}'. "
            f"Permission must be one of: {sorted(_COMMUNITY_BY_VALUE)}"
        )
    return flag


def validate_global_permission(permission: GlobalPermission | str) -> GlobalPermission:
    """
    Return the enum member for a global flag.

    Raises:
        ValueError: If the name is not a declared global flag
    """
    if isinstance(permission, GlobalPermission):
        return permission
    flag = _GLOBAL_BY_VALUE.get(permission)
    if flag is None:
        raise ValueError(
            f"Invalid global permission '{permission}'. "
            f"Permission must be one of: {sorted(_GLOBAL_BY_VALUE)}"
        )
    return flag
