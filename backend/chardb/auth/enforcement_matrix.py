"""Declarative mapping of protected operations to the policies they require.

Each operation lists its policies in evaluation order; all of them must
pass. Argument paths are dot-separated and read from the merged request
arguments (path params, query params and JSON body). Field rules gate single
fields of an otherwise readable object; ``$root`` paths read from that object.

Flags are validated when a policy is constructed, so a misspelled flag fails
on import rather than at request time.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from ..errors import MisconfigurationError
from .combinator import AnyOf
from .permissions import CommunityPermission, GlobalPermission
from .policies import (
    Authenticated,
    CommunityPermissionPolicy,
    EntityOwnerPolicy,
    Policy,
    SelfPolicy,
    GlobalPermissionPolicy,
    character_image_uploader,
    character_profile_editor,
    character_registry_editor,
)
from .redaction import FieldRule


@dataclass(frozen=True)
class OperationRule:
    name: str
    policies: tuple[Policy, ...]
    public: bool = False


def rule(name: str, *policies: Policy, public: bool = False) -> OperationRule:
    if not policies and not public:
        raise ValueError(f"Operation '{name}' must declare at least one policy")
    return OperationRule(name=name, policies=policies, public=public)


def _table(*rules: OperationRule) -> dict[str, OperationRule]:
    table: dict[str, OperationRule] = {}
    for entry in rules:
        if entry.name in table:
            raise ValueError(f"Operation '{entry.name}' is declared twice")
        table[entry.name] = entry
    return table


OPERATION_RULES: Final[dict[str, OperationRule]] = _table(
    # Platform
    rule("create_community", GlobalPermissionPolicy(GlobalPermission.CAN_CREATE_COMMUNITY)),
    rule("list_users", GlobalPermissionPolicy(GlobalPermission.CAN_LIST_USERS)),
    rule("list_global_invite_codes", GlobalPermissionPolicy(GlobalPermission.CAN_LIST_INVITE_CODES)),
    rule("create_global_invite_code", GlobalPermissionPolicy(GlobalPermission.CAN_CREATE_INVITE_CODE)),
    rule(
        "grant_global_permissions",
        GlobalPermissionPolicy(GlobalPermission.CAN_GRANT_GLOBAL_PERMISSIONS),
    ),
    rule("update_user", SelfPolicy(user_id="id")),
    rule("view_current_user", Authenticated()),
    rule("view_public_profile", public=True),
    # Community membership
    rule(
        "view_community",
        CommunityPermissionPolicy(CommunityPermission.ANY, community_id="community_id"),
    ),
    rule(
        "create_invite_code",
        CommunityPermissionPolicy(
            CommunityPermission.CAN_CREATE_INVITE_CODE, community_id="input.community_id"
        ),
    ),
    rule(
        "list_invite_codes",
        CommunityPermissionPolicy(CommunityPermission.CAN_LIST_INVITE_CODES, community_id="community_id"),
    ),
    rule("respond_to_invitation", EntityOwnerPolicy(invitee_of_invitation_id="id")),
    rule(
        "view_invitation",
        AnyOf(
            EntityOwnerPolicy(inviter_or_invitee_of_invitation_id="id"),
            CommunityPermissionPolicy(
                CommunityPermission.CAN_LIST_INVITE_CODES, community_invitation_id="id"
            ),
        ),
    ),
    rule(
        "remove_invitation",
        AnyOf(
            EntityOwnerPolicy(inviter_or_invitee_of_invitation_id="id"),
            CommunityPermissionPolicy(
                CommunityPermission.CAN_CREATE_INVITE_CODE, community_invitation_id="id"
            ),
        ),
    ),
    rule(
        "create_role",
        CommunityPermissionPolicy(CommunityPermission.CAN_CREATE_ROLE, community_id="input.community_id"),
    ),
    rule("update_role", CommunityPermissionPolicy(CommunityPermission.CAN_EDIT_ROLE, role_id="id")),
    rule(
        "remove_community_member",
        CommunityPermissionPolicy(
            CommunityPermission.CAN_REMOVE_COMMUNITY_MEMBER, community_member_id="id"
        ),
    ),
    rule(
        "update_member_roles",
        CommunityPermissionPolicy(
            CommunityPermission.CAN_MANAGE_MEMBER_ROLES, community_member_id="id"
        ),
    ),
    # Species and traits
    rule(
        "create_species",
        CommunityPermissionPolicy(
            CommunityPermission.CAN_CREATE_SPECIES, community_id="input.community_id"
        ),
    ),
    rule("update_species", CommunityPermissionPolicy(CommunityPermission.CAN_EDIT_SPECIES, species_id="id")),
    rule("remove_species", CommunityPermissionPolicy(CommunityPermission.CAN_EDIT_SPECIES, species_id="id")),
    rule(
        "create_species_variant",
        CommunityPermissionPolicy(CommunityPermission.CAN_EDIT_SPECIES, species_id="input.species_id"),
    ),
    rule(
        "update_species_variant",
        CommunityPermissionPolicy(CommunityPermission.CAN_EDIT_SPECIES, species_variant_id="id"),
    ),
    rule(
        "create_trait",
        CommunityPermissionPolicy(CommunityPermission.CAN_EDIT_SPECIES, species_id="input.species_id"),
    ),
    rule("update_trait", CommunityPermissionPolicy(CommunityPermission.CAN_EDIT_SPECIES, trait_id="id")),
    rule(
        "update_enum_value",
        CommunityPermissionPolicy(CommunityPermission.CAN_EDIT_SPECIES, enum_value_id="id"),
    ),
    rule(
        "update_enum_value_setting",
        CommunityPermissionPolicy(CommunityPermission.CAN_EDIT_SPECIES, enum_value_setting_id="id"),
    ),
    rule(
        "update_trait_list_entry",
        CommunityPermissionPolicy(CommunityPermission.CAN_EDIT_SPECIES, trait_list_entry_id="id"),
    ),
    # Characters
    rule(
        "create_character",
        CommunityPermissionPolicy(
            CommunityPermission.CAN_CREATE_CHARACTER, species_id="input.species_id"
        ),
    ),
    rule(
        "create_orphaned_character",
        CommunityPermissionPolicy(
            CommunityPermission.CAN_CREATE_ORPHANED_CHARACTER, species_id="input.species_id"
        ),
    ),
    rule("update_character", EntityOwnerPolicy(character_id="id")),
    rule("delete_character", EntityOwnerPolicy(character_id="id")),
    rule("update_character_profile", character_profile_editor("id")),
    rule("update_character_registry", character_registry_editor("id")),
    rule(
        "update_character_traits",
        CommunityPermissionPolicy(CommunityPermission.CAN_EDIT_CHARACTER, character_id="id"),
    ),
    rule("upload_character_image", character_image_uploader("input.character_id")),
    # Media and comments
    rule("update_media", EntityOwnerPolicy(media_id="id")),
    rule("delete_media", EntityOwnerPolicy(media_id="id")),
    rule("update_gallery", EntityOwnerPolicy(gallery_id="id")),
    rule("delete_gallery", EntityOwnerPolicy(gallery_id="id")),
    rule("delete_image", EntityOwnerPolicy(image_id="id")),
    rule("update_comment", EntityOwnerPolicy(comment_id="id")),
    rule("delete_comment", EntityOwnerPolicy(comment_id="id")),
    rule(
        "moderate_character_image",
        CommunityPermissionPolicy(
            CommunityPermission.CAN_MODERATE_IMAGES, character_id="input.character_id"
        ),
    ),
    # Items
    rule(
        "create_item_type",
        CommunityPermissionPolicy(CommunityPermission.CAN_MANAGE_ITEMS, community_id="input.community_id"),
    ),
    rule(
        "update_item_type",
        CommunityPermissionPolicy(CommunityPermission.CAN_MANAGE_ITEMS, item_type_id="id"),
    ),
    rule(
        "grant_item",
        CommunityPermissionPolicy(CommunityPermission.CAN_GRANT_ITEMS, item_type_id="input.item_type_id"),
    ),
)


# "Type.field" -> rule applied when that field is read
FIELD_RULES: Final[dict[str, FieldRule]] = {
    "PendingOwnership.provider_account_id": FieldRule(
        (
            CommunityPermissionPolicy(
                CommunityPermission.CAN_CREATE_ORPHANED_CHARACTER,
                character_id="$root.character_id",
            ),
        ),
        empty="",
    ),
    "PendingOwnership.display_identifier": FieldRule(
        (
            CommunityPermissionPolicy(
                CommunityPermission.CAN_CREATE_ORPHANED_CHARACTER,
                character_id="$root.character_id",
            ),
        ),
        empty="",
    ),
    "Media.pending_moderation_image": FieldRule(
        (
            CommunityPermissionPolicy(
                CommunityPermission.CAN_MODERATE_IMAGES,
                character_id="$root.character_id",
            ),
        ),
        empty=None,
    ),
    "Media.user_has_liked": FieldRule((Authenticated(),), empty=False),
    "User.email": FieldRule((SelfPolicy(),), empty=""),
}


def rule_for(name: str) -> OperationRule:
    try:
        return OPERATION_RULES[name]
    except KeyError:
        raise MisconfigurationError(
            f"No authorization rule declared for operation '{name}'",
            details={"operation": name},
        ) from None


def fields_for(type_name: str) -> dict[str, FieldRule]:
    prefix = f"{type_name}."
    return {
        key[len(prefix):]: field_rule
        for key, field_rule in FIELD_RULES.items()
        if key.startswith(prefix)
    }
