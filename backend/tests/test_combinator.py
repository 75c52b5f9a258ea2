import pytest

from chardb.auth.combinator import AllOf, AnyOf, evaluate_any
from chardb.auth.policies import GENERIC_DENIAL, Policy, PolicyContext, PolicyDenied, PolicyResult
from chardb.errors import MisconfigurationError
from tests.authz_helpers import World


class Recorded(Policy):
    def __init__(self, calls: list[str], name: str) -> None:
        self.calls = calls
        self.name = name

    async def evaluate(self, ctx: PolicyContext) -> PolicyResult:
        self.calls.append(self.name)
        return await self.outcome()

    async def outcome(self) -> PolicyResult:
        raise NotImplementedError


class Allows(Recorded):
    async def outcome(self) -> PolicyResult:
        return PolicyResult.allow()


class Denies(Recorded):
    def __init__(self, calls: list[str], name: str, reason: str | None = None) -> None:
        super().__init__(calls, name)
        self.reason = reason

    async def outcome(self) -> PolicyResult:
        return PolicyResult.deny(self.reason)


class RaisesDenial(Recorded):
    async def outcome(self) -> PolicyResult:
        raise PolicyDenied(f"{self.name} denied")


class Faults(Recorded):
    async def outcome(self) -> PolicyResult:
        raise RuntimeError(f"{self.name} exploded")


class Misconfigured(Recorded):
    async def outcome(self) -> PolicyResult:
        raise MisconfigurationError()


@pytest.fixture
def world() -> World:
    return World()


@pytest.fixture
def ctx(world: World) -> PolicyContext:
    return world.service().context(world.user(), {})


class TestEvaluateAny:
    @pytest.mark.anyio
    async def test_allows_after_raised_denials(self, ctx: PolicyContext) -> None:
        calls: list[str] = []
        policies = [RaisesDenial(calls, "a"), RaisesDenial(calls, "b"), Allows(calls, "c")]

        result = await evaluate_any(ctx, policies)

        assert result.allowed is True
        assert calls == ["a", "b", "c"]

    @pytest.mark.anyio
    async def test_surfaces_first_reason_not_last(self, ctx: PolicyContext) -> None:
        calls: list[str] = []
        policies = [RaisesDenial(calls, "a"), RaisesDenial(calls, "b")]

        result = await evaluate_any(ctx, policies)

        assert result.allowed is False
        assert result.reason == "a denied"

    @pytest.mark.anyio
    async def test_mixed_returned_and_raised_denials(self, ctx: PolicyContext) -> None:
        calls: list[str] = []
        policies = [Denies(calls, "a", "first"), RaisesDenial(calls, "b")]

        result = await evaluate_any(ctx, policies)

        assert result.reason == "first"

    @pytest.mark.anyio
    async def test_generic_denial_when_no_reason_given(self, ctx: PolicyContext) -> None:
        calls: list[str] = []
        result = await evaluate_any(ctx, [Denies(calls, "a"), Denies(calls, "b")])

        assert result.allowed is False
        assert result.reason == GENERIC_DENIAL

    @pytest.mark.anyio
    async def test_stops_at_first_allow(self, ctx: PolicyContext) -> None:
        calls: list[str] = []
        await evaluate_any(ctx, [Allows(calls, "a"), Denies(calls, "b")])

        assert calls == ["a"]

    @pytest.mark.anyio
    async def test_fault_is_logged_and_next_alternative_tried(
        self, ctx: PolicyContext, caplog: pytest.LogCaptureFixture
    ) -> None:
        calls: list[str] = []

        with caplog.at_level("WARNING"):
            result = await evaluate_any(ctx, [Faults(calls, "a"), Allows(calls, "b")])

        assert result.allowed is True
        assert any("policy_fault" in record.getMessage() for record in caplog.records)

    @pytest.mark.anyio
    async def test_first_fault_is_reraised_when_everything_fails(self, ctx: PolicyContext) -> None:
        calls: list[str] = []

        with pytest.raises(RuntimeError, match="a exploded"):
            await evaluate_any(ctx, [Faults(calls, "a"), RaisesDenial(calls, "b")])
        assert calls == ["a", "b"]

    @pytest.mark.anyio
    async def test_denial_before_fault_wins(self, ctx: PolicyContext) -> None:
        calls: list[str] = []

        result = await evaluate_any(ctx, [RaisesDenial(calls, "a"), Faults(calls, "b")])

        assert result.allowed is False
        assert result.reason == "a denied"

    @pytest.mark.anyio
    async def test_misconfiguration_is_never_captured(self, ctx: PolicyContext) -> None:
        calls: list[str] = []

        with pytest.raises(MisconfigurationError):
            await evaluate_any(ctx, [Misconfigured(calls, "a"), Allows(calls, "b")])
        assert calls == ["a"]


class TestComposition:
    def test_empty_composites_are_rejected(self) -> None:
        with pytest.raises(ValueError):
            AnyOf()
        with pytest.raises(ValueError):
            AllOf()

    @pytest.mark.anyio
    async def test_any_of_inside_operation(self, world: World) -> None:
        calls: list[str] = []
        policy = AnyOf(RaisesDenial(calls, "a"), Allows(calls, "b"))

        result = await world.service().evaluate(world.user(), [policy], {})

        assert result.allowed is True

    @pytest.mark.anyio
    async def test_all_of_nested_in_any_of(self, world: World) -> None:
        calls: list[str] = []
        policy = AnyOf(
            AllOf(Allows(calls, "a"), Denies(calls, "b", "b failed")),
            Denies(calls, "c", "c failed"),
        )

        result = await world.service().evaluate(world.user(), [policy], {})

        assert result.allowed is False
        assert result.reason == "b failed"
        assert calls == ["a", "b", "c"]
