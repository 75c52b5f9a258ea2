"""
Tests for PermissionService: role aggregation and fail-closed flag checks.
"""
import uuid

import pytest

from chardb.auth.permissions import (
    COMMUNITY_PERMISSION_FLAGS,
    CommunityPermission,
    GlobalPermission,
)
from chardb.services.authz.permission_service import aggregate_roles
from tests.authz_helpers import FakeRole, World


@pytest.fixture
def world() -> World:
    return World()


class TestAggregateCommunityPermissions:
    @pytest.mark.anyio
    async def test_flags_are_ored_across_roles(self, world: World) -> None:
        community = world.community()
        user = world.user()
        world.grant(
            user,
            world.role(community.id, can_edit_character=False, can_edit_own_character=True),
        )
        world.grant(user, world.role(community.id, can_edit_character=True))

        perms = await world.service().permissions.aggregate_community_permissions(
            user.id, community.id
        )

        assert perms[CommunityPermission.CAN_EDIT_CHARACTER] is True
        assert perms[CommunityPermission.CAN_EDIT_OWN_CHARACTER] is True
        assert perms.has_membership is True
        assert perms[CommunityPermission.CAN_EDIT_SPECIES] is False

    @pytest.mark.anyio
    async def test_no_roles_means_no_membership(self, world: World) -> None:
        community = world.community()
        user = world.user()

        perms = await world.service().permissions.aggregate_community_permissions(
            user.id, community.id
        )

        assert perms.has_membership is False
        assert not any(perms[flag] for flag in COMMUNITY_PERMISSION_FLAGS)

    @pytest.mark.anyio
    async def test_roles_in_other_communities_are_ignored(self, world: World) -> None:
        community = world.community()
        other = world.community()
        user = world.user()
        world.grant(user, world.role(other.id, can_edit_species=True))

        perms = await world.service().permissions.aggregate_community_permissions(
            user.id, community.id
        )

        assert perms.has_membership is False
        assert perms[CommunityPermission.CAN_EDIT_SPECIES] is False

    @pytest.mark.anyio
    async def test_role_with_no_flags_still_counts_as_membership(self, world: World) -> None:
        community = world.community()
        user = world.user()
        world.grant(user, world.role(community.id))

        perms = await world.service().permissions.aggregate_community_permissions(
            user.id, community.id
        )

        assert perms.has_membership is True
        assert perms[CommunityPermission.ANY] is True

    @pytest.mark.anyio
    async def test_missing_principal_gets_empty_permissions(self, world: World) -> None:
        community = world.community()

        perms = await world.service().permissions.aggregate_community_permissions(
            None, community.id
        )

        assert not any(perms.as_dict().values())
        assert world.store.role_reads == 0

    @pytest.mark.anyio
    async def test_as_dict_lists_every_flag_and_membership(self, world: World) -> None:
        community = world.community()
        user = world.user()
        world.grant(user, world.role(community.id, can_edit_character=True))

        perms = await world.service().permissions.aggregate_community_permissions(
            user.id, community.id
        )
        payload = perms.as_dict()

        assert payload["can_edit_character"] is True
        assert payload["can_edit_own_character"] is False
        assert payload["has_membership"] is True
        assert set(payload) == {flag.value for flag in COMMUNITY_PERMISSION_FLAGS} | {"has_membership"}


class TestAggregateRoles:
    def test_membership_matches_role_count(self) -> None:
        community_id = uuid.uuid4()
        for count in range(4):
            roles = [FakeRole(community_id) for _ in range(count)]
            assert aggregate_roles(roles).has_membership is (count > 0)

    def test_each_flag_is_or_over_roles(self) -> None:
        community_id = uuid.uuid4()
        roles = [
            FakeRole(community_id, can_grant_items=True),
            FakeRole(community_id, can_manage_items=True),
            FakeRole(community_id),
        ]
        perms = aggregate_roles(roles)

        for flag in COMMUNITY_PERMISSION_FLAGS:
            expected = any(getattr(role, flag.value) for role in roles)
            assert perms[flag] is expected

    def test_truthy_non_bool_flag_does_not_grant(self) -> None:
        role = FakeRole(uuid.uuid4(), can_edit_species="yes")
        assert aggregate_roles([role])[CommunityPermission.CAN_EDIT_SPECIES] is False

    def test_permissions_are_read_only(self) -> None:
        perms = aggregate_roles([FakeRole(uuid.uuid4(), can_edit_species=True)])
        with pytest.raises(TypeError):
            perms.flags[CommunityPermission.CAN_EDIT_SPECIES] = False  # type: ignore[index]

    def test_unknown_flag_lookup(self) -> None:
        perms = aggregate_roles([FakeRole(uuid.uuid4())])
        with pytest.raises(ValueError, match="Invalid community permission"):
            perms["can_fly"]
        assert perms.has("can_fly") is False


class TestFlagChecks:
    @pytest.mark.anyio
    async def test_has_community_permission(self, world: World) -> None:
        community = world.community()
        user = world.user()
        world.grant(user, world.role(community.id, can_create_species=True))
        service = world.service().permissions

        assert await service.has_community_permission(
            user.id, community.id, CommunityPermission.CAN_CREATE_SPECIES
        ) is True
        assert await service.has_community_permission(
            user.id, community.id, "can_create_species"
        ) is True
        assert await service.has_community_permission(
            user.id, community.id, CommunityPermission.CAN_CREATE_ROLE
        ) is False

    @pytest.mark.anyio
    async def test_unknown_community_flag_fails_closed(
        self, world: World, caplog: pytest.LogCaptureFixture
    ) -> None:
        community = world.community()
        user = world.user()
        world.grant(user, world.role(community.id, can_create_species=True))

        with caplog.at_level("WARNING"):
            result = await world.service().permissions.has_community_permission(
                user.id, community.id, "can_everything"
            )

        assert result is False
        assert world.store.role_reads == 0
        assert any("can_everything" in record.getMessage() for record in caplog.records)

    def test_has_global_permission(self, world: World) -> None:
        service = world.service().permissions
        creator = world.user(can_create_community=True)

        assert service.has_global_permission(creator, GlobalPermission.CAN_CREATE_COMMUNITY) is True
        assert service.has_global_permission(creator, GlobalPermission.IS_ADMIN) is False
        assert service.has_global_permission(None, GlobalPermission.CAN_CREATE_COMMUNITY) is False
        assert service.has_global_permission(creator, "is_wizard") is False

    def test_is_self(self) -> None:
        user_id = uuid.uuid4()
        service = World().service().permissions

        assert service.is_self(user_id, user_id) is True
        assert service.is_self(user_id, uuid.uuid4()) is False
        assert service.is_self(None, user_id) is False
        assert service.is_self(user_id, None) is False

    @pytest.mark.anyio
    async def test_get_principal(self, world: World) -> None:
        user = world.user()
        service = world.service().permissions

        assert await service.get_principal(user.id) is user
        assert await service.get_principal(uuid.uuid4()) is None
        assert await service.get_principal(None) is None
