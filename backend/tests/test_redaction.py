import pytest

from chardb.auth.permissions import CommunityPermission
from chardb.auth.policies import Authenticated, CommunityPermissionPolicy
from chardb.auth.redaction import (
    FieldRule,
    Redacted,
    redact_fields,
    resolve_redactable,
    strip_redactions,
)
from tests.authz_helpers import World


def orphan_gate() -> tuple[CommunityPermissionPolicy, ...]:
    return (
        CommunityPermissionPolicy(
            CommunityPermission.CAN_CREATE_ORPHANED_CHARACTER,
            character_id="$root.character_id",
        ),
    )


@pytest.fixture
def world() -> World:
    return World()


def contains_placeholder(payload: object) -> bool:
    if isinstance(payload, Redacted):
        return True
    if isinstance(payload, dict):
        return any(contains_placeholder(value) for value in payload.values())
    if isinstance(payload, (list, tuple)):
        return any(contains_placeholder(value) for value in payload)
    return False


class TestRedactFields:
    @pytest.mark.anyio
    async def test_denied_fields_become_natural_empty_values(self, world: World) -> None:
        community = world.community()
        character = world.character(owner_id=None, species_id=world.species(community.id).id)
        fields = {
            "provider_account_id": FieldRule(orphan_gate(), empty=""),
            "claim": FieldRule(orphan_gate(), empty=None),
        }
        obj = {
            "character_id": str(character.id),
            "provider_account_id": "discord:1234",
            "claim": {"status": "pending"},
        }

        payload = await redact_fields(world.service(), world.user(), obj, fields)

        assert payload["provider_account_id"] == ""
        assert payload["claim"] is None
        assert payload["character_id"] == str(character.id)
        assert not contains_placeholder(payload)

    @pytest.mark.anyio
    async def test_allowed_fields_keep_their_values(self, world: World) -> None:
        community = world.community()
        character = world.character(owner_id=None, species_id=world.species(community.id).id)
        manager = world.user()
        world.grant(manager, world.role(community.id, can_create_orphaned_character=True))
        obj = {"character_id": str(character.id), "provider_account_id": "discord:1234"}

        payload = await redact_fields(
            world.service(),
            manager,
            obj,
            {"provider_account_id": FieldRule(orphan_gate(), empty="")},
        )

        assert payload["provider_account_id"] == "discord:1234"

    @pytest.mark.anyio
    async def test_anonymous_reader_gets_false(self, world: World) -> None:
        payload = await redact_fields(
            world.service(),
            None,
            {"user_has_liked": True},
            {"user_has_liked": FieldRule((Authenticated(),), empty=False)},
        )

        assert payload["user_has_liked"] is False

    @pytest.mark.anyio
    async def test_source_object_is_not_modified(self, world: World) -> None:
        obj = {"user_has_liked": True}

        await redact_fields(
            world.service(), None, obj, {"user_has_liked": FieldRule((Authenticated(),), empty=False)}
        )

        assert obj == {"user_has_liked": True}

    @pytest.mark.anyio
    async def test_declared_type_rules(self, world: World) -> None:
        user = world.user()
        other = world.user()
        service = world.service()
        obj = {"id": str(user.id), "username": "someone", "email": "someone@example.com"}

        own_view = await service.redact(user, "User", obj)
        other_view = await service.redact(other, "User", obj)

        assert own_view["email"] == "someone@example.com"
        assert other_view["email"] == ""
        assert other_view["username"] == "someone"

    @pytest.mark.anyio
    async def test_moderation_field_is_null_for_non_moderators(self, world: World) -> None:
        community = world.community()
        character = world.character(owner_id=None, species_id=world.species(community.id).id)
        owner = world.user()
        media = {
            "id": "m-1",
            "owner_id": str(owner.id),
            "character_id": str(character.id),
            "pending_moderation_image": {"url": "https://example.com/a.png"},
        }

        payload = await world.service().redact(owner, "Media", media)

        assert payload["pending_moderation_image"] is None


class TestTwoStepTranslation:
    @pytest.mark.anyio
    async def test_denial_produces_truthy_placeholder(self, world: World) -> None:
        ctx = world.service().context(None, {})

        value = await resolve_redactable(ctx, (Authenticated(),), True, False)

        assert isinstance(value, Redacted)
        assert bool(value) is True
        assert strip_redactions(value) is False

    def test_strip_walks_nested_payloads(self) -> None:
        payload = {
            "items": [{"email": Redacted("")}, {"email": "kept@example.com"}],
            "pair": (Redacted(None), 1),
            "flag": Redacted(False),
        }

        stripped = strip_redactions(payload)

        assert stripped == {
            "items": [{"email": ""}, {"email": "kept@example.com"}],
            "pair": (None, 1),
            "flag": False,
        }
        assert not contains_placeholder(stripped)
