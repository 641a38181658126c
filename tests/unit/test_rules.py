"""
Unit tests for built-in rules and rule composition.
"""

import asyncio

import pytest

from valpipe import (
    RuleResult,
    Severity,
    SyncRule,
    ValidationContext,
    create_and_rule,
    create_async_rule,
    create_conditional_rule,
    create_or_rule,
    create_pattern_rule,
    create_range_rule,
    create_sync_rule,
)


class TestRangeRule:
    """Tests for RangeRule."""

    @pytest.mark.asyncio
    async def test_in_range(self):
        rule = create_range_rule("mass", 0, 100)
        result = await rule.execute(50)
        assert result.passed
        assert result.metadata["value"] == 50

    @pytest.mark.asyncio
    async def test_out_of_range(self):
        rule = create_range_rule("mass", 0, 100)
        result = await rule.execute(150, ValidationContext.create(150, ["mass"]))

        assert not result.passed
        assert result.error.code == "VALUE_OUT_OF_RANGE"
        assert "150" in result.error.message
        assert result.error.path == ["mass"]
        assert result.error.value == 150
        assert result.error.context == {"min": 0, "max": 100, "inclusive": True}
        assert result.duration >= 0

    @pytest.mark.asyncio
    async def test_bounds(self):
        inclusive = create_range_rule("r", 0, 10)
        exclusive = create_range_rule("r", 0, 10, inclusive=False)

        assert (await inclusive.execute(10)).passed
        assert (await inclusive.execute(0)).passed
        assert not (await exclusive.execute(10)).passed
        assert not (await exclusive.execute(0)).passed
        assert (await exclusive.execute(5.5)).passed

    def test_applies_only_to_finite_numbers(self):
        rule = create_range_rule("r", 0, 10)
        assert rule.applies_to(3)
        assert rule.applies_to(3.5)
        assert not rule.applies_to(True)
        assert not rule.applies_to(float("nan"))
        assert not rule.applies_to(float("inf"))
        assert not rule.applies_to("5")
        assert not rule.applies_to(None)


class TestPatternRule:
    """Tests for PatternRule."""

    @pytest.mark.asyncio
    async def test_match(self):
        rule = create_pattern_rule("cas", r"^\d{2,7}-\d{2}-\d$", "CAS number")
        assert (await rule.execute("7732-18-5")).passed

    @pytest.mark.asyncio
    async def test_mismatch(self):
        rule = create_pattern_rule("cas", r"^\d{2,7}-\d{2}-\d$", "CAS number")
        result = await rule.execute("water")
        assert result.error.code == "PATTERN_MISMATCH"
        assert result.error.message == 'Value "water" does not match CAS number pattern'

    def test_applies_to_strings(self):
        rule = create_pattern_rule("p", "x", "x")
        assert rule.applies_to("abc")
        assert not rule.applies_to(5)


class TestFunctionRules:
    """Tests for sync and async function-backed rules."""

    @pytest.mark.asyncio
    async def test_sync_bool_results(self):
        rule = create_sync_rule("positive", lambda v, ctx: v > 0)
        assert (await rule.execute(1)).passed

        result = await rule.execute(-1)
        assert not result.passed
        assert result.error.code == "RULE_FAILED"

    @pytest.mark.asyncio
    async def test_sync_exception_becomes_failure(self):
        def broken(value, context):
            raise ValueError("bad input")

        result = await create_sync_rule("broken", broken).execute(1)
        assert not result.passed
        assert result.error.code == "RULE_EXECUTION_ERROR"
        assert result.error.message == "Rule 'broken' failed: bad input"

    @pytest.mark.asyncio
    async def test_sync_unexpected_return_type(self):
        result = await create_sync_rule("odd", lambda v, ctx: "yes").execute(1)
        assert result.error.code == "RULE_EXECUTION_ERROR"

    def test_subclass_must_implement(self):
        rule = SyncRule("bare")
        with pytest.raises(NotImplementedError):
            rule.validate_sync(1, ValidationContext.create(1))

    @pytest.mark.asyncio
    async def test_async_rule(self):
        async def lookup(value, context):
            await asyncio.sleep(0)
            return RuleResult(passed=value == "known")

        rule = create_async_rule("lookup", lookup)
        assert (await rule.execute("known")).passed
        assert not (await rule.execute("other")).passed

    @pytest.mark.asyncio
    async def test_async_timeout(self):
        async def slow(value, context):
            await asyncio.sleep(1)
            return True

        rule = create_async_rule("slow", slow, timeout_ms=50)
        loop = asyncio.get_running_loop()
        started = loop.time()
        result = await rule.execute(1)

        assert loop.time() - started >= 0.04
        assert not result.passed
        assert result.error.code == "ASYNC_RULE_ERROR"
        assert "timed out" in result.error.message

    @pytest.mark.asyncio
    async def test_async_exception(self):
        async def broken(value, context):
            raise ConnectionError("service down")

        result = await create_async_rule("remote", broken).execute(1)
        assert result.error.code == "ASYNC_RULE_ERROR"
        assert result.error.message == "Async rule 'remote' failed: service down"


class TestCompositeRule:
    """Tests for AND/OR composition."""

    @pytest.mark.asyncio
    async def test_and_passes(self):
        rule = create_and_rule("band", "band", [
            create_range_rule("low", 0, 100),
            create_range_rule("high", 10, 50),
        ])
        result = await rule.execute(20)
        assert result.passed
        assert result.metadata["operator"] == "AND"
        assert result.metadata["rules_executed"] == 2

    @pytest.mark.asyncio
    async def test_and_surfaces_first_failure(self):
        rule = create_and_rule("band", "band", [
            create_range_rule("low", 0, 100),
            create_range_rule("high", 10, 50),
        ])
        result = await rule.execute(75)
        assert not result.passed
        assert result.error.code == "VALUE_OUT_OF_RANGE"
        assert len(result.metadata["all_errors"]) == 1

    @pytest.mark.asyncio
    async def test_or(self):
        rule = create_or_rule("either", "either", [
            create_range_rule("small", 0, 10),
            create_range_rule("large", 90, 100),
        ])
        assert (await rule.execute(5)).passed
        assert (await rule.execute(95)).passed

        result = await rule.execute(50)
        assert not result.passed
        assert result.error.code == "COMPOSITE_RULE_FAILURE"
        assert result.error.context == {"operator": "OR", "errors": 2}

    @pytest.mark.asyncio
    async def test_inapplicable_children_skipped(self):
        rule = create_and_rule("mixed", "mixed", [
            create_range_rule("num", 0, 10),
            create_pattern_rule("text", "^a", "a-prefix"),
        ])
        assert rule.applies_to("abc")
        result = await rule.execute("abc")
        assert result.passed
        assert result.metadata["rules_executed"] == 1

    @pytest.mark.asyncio
    async def test_or_with_nothing_applicable_fails(self):
        rule = create_or_rule("none", "none", [create_range_rule("num", 0, 10)])
        result = await rule.execute("text")
        assert not result.passed
        assert result.error.code == "COMPOSITE_RULE_FAILURE"

    @pytest.mark.asyncio
    async def test_child_exception(self):
        class Exploding(SyncRule):
            def applies_to(self, value):
                return True

            async def execute(self, value, context=None):
                raise RuntimeError("kaboom")

        rule = create_and_rule("outer", "outer", [Exploding("inner")])
        result = await rule.execute(1)
        assert result.error.code == "COMPOSITE_RULE_ERROR"
        assert "kaboom" in result.error.message


class TestConditionalRule:
    """Tests for ConditionalRule."""

    @pytest.mark.asyncio
    async def test_condition_not_met_skips(self):
        calls = []

        def check(value, context):
            calls.append(value)
            return False

        inner = create_sync_rule("inner", check)
        rule = create_conditional_rule("only_big", "", lambda v, ctx: v > 100, inner)

        result = await rule.execute(5)
        assert result.passed
        assert result.metadata == {"condition_met": False, "skipped": True}
        assert calls == []

    @pytest.mark.asyncio
    async def test_condition_met_runs_inner(self):
        inner = create_range_rule("cap", 0, 1000)
        rule = create_conditional_rule("only_big", "", lambda v, ctx: v > 100, inner)

        result = await rule.execute(5000)
        assert not result.passed
        assert result.error.code == "VALUE_OUT_OF_RANGE"
        assert result.metadata["condition_met"] is True
        assert result.metadata["parent_rule"] == "only_big"

    @pytest.mark.asyncio
    async def test_condition_exception(self):
        def condition(value, context):
            raise KeyError("missing")

        rule = create_conditional_rule("c", "", condition, create_range_rule("r", 0, 1))
        result = await rule.execute(0)
        assert result.error.code == "CONDITIONAL_RULE_ERROR"

    def test_applies_to_delegates(self):
        rule = create_conditional_rule("c", "", lambda v, ctx: True, create_range_rule("r", 0, 1))
        assert rule.applies_to(0.5)
        assert not rule.applies_to("x")

    @pytest.mark.asyncio
    async def test_warning_severity_failure(self):
        rule = create_sync_rule(
            "soft",
            lambda v, ctx: RuleResult(
                passed=False,
                error=SyncRule("soft").create_failure("SOFT", "soft", severity=Severity.WARNING).error,
            ),
        )
        result = await rule.execute(1)
        assert not result.passed
        assert result.error.severity == Severity.WARNING
