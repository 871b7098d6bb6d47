"""
Unit tests for the Pantry executor.

Tests resource binding, the plan/apply workflow and per-resource outcomes.
"""

import logging

import pytest

from pantry.cookbook import Recipe
from pantry.core import Action, Executor, Outcome, Resource
from pantry.errors import PermissionDenied
from pantry.resources.template import Template
from pantry.transport import NullTransport
from pantry.values import SeededValues, generated_uuid


class MockResource(Resource):
    """Resource whose current state and apply behaviour are set by the test."""

    def __init__(self, name: str, exists: bool = False, fail_plan: bool = False, fail_apply: bool = False):
        super().__init__(name)
        self.exists = exists
        self.fail_plan = fail_plan
        self.fail_apply = fail_apply
        self.applied = 0

    def resource_type(self) -> str:
        return "mock"

    def check(self, platform):
        if self.fail_plan:
            raise PermissionDenied(f"cannot inspect {self.name}")
        return {"exists": self.exists}

    def desired_state(self):
        return {"exists": True}

    def apply(self, plan, platform):
        if self.fail_apply:
            raise PermissionDenied(f"cannot write {self.name}")
        self.applied += 1
        self.exists = True


class TestExecutorResourceManagement:
    """Unit tests for binding resources to an executor."""

    def test_add_binds_transport_and_values(self, mock_transport, platform):
        values = SeededValues("x")
        executor = Executor(platform=platform, transport=mock_transport, values=values)
        resource = MockResource("one")

        assert isinstance(resource._transport, NullTransport)
        executor.add(resource)

        assert resource._transport is mock_transport
        assert resource._values is values
        assert executor.get("mock:one") is resource

    def test_duplicate_resource(self, mock_transport, platform):
        executor = Executor(platform=platform, transport=mock_transport)
        executor.add(MockResource("one"))

        with pytest.raises(ValueError, match="Duplicate resource"):
            executor.add(MockResource("one"))

    def test_load_recipe_keeps_order_and_cookbook(self, mock_transport, platform, cookbook):
        recipe = Recipe("demo", cookbook=cookbook)
        first = recipe.add(MockResource("b"))
        second = recipe.add(MockResource("a"))

        executor = Executor(platform=platform, transport=mock_transport)
        executor.load(recipe)

        assert executor.resources == [first, second]
        assert first._cookbook is cookbook

    def test_clear(self, mock_transport, platform):
        executor = Executor(platform=platform, transport=mock_transport)
        executor.add(MockResource("one"))
        executor.clear()

        assert executor.resources == []
        assert executor.get("mock:one") is None

    def test_platform_detected_through_transport(self, mock_transport):
        executor = Executor(transport=mock_transport)

        assert executor.platform.system == "Linux"
        assert executor.platform.arch == "x86_64"


class TestExecutorPlanApply:
    """Unit tests for plan/apply and outcomes."""

    def test_plan_counts_changes(self, mock_transport, platform):
        executor = Executor(platform=platform, transport=mock_transport)
        executor.add(MockResource("missing"))
        executor.add(MockResource("present", exists=True))

        result = executor.plan()

        assert result.change_count == 1
        assert result.plans["mock:missing"].action == Action.CREATE
        assert result.plans["mock:present"].action == Action.NONE

    def test_outcomes(self, mock_transport, platform):
        executor = Executor(platform=platform, transport=mock_transport)
        executor.add(MockResource("missing"))
        executor.add(MockResource("present", exists=True))

        result = executor.apply(executor.plan())

        assert result.success
        assert result.outcomes == {
            "mock:missing": Outcome.CONVERGED,
            "mock:present": Outcome.COMPLIANT,
        }
        assert result.changed_resources == ["mock:missing"]

    def test_failure_does_not_stop_others(self, mock_transport, platform):
        executor = Executor(platform=platform, transport=mock_transport)
        broken = executor.add(MockResource("broken", fail_apply=True))
        after = executor.add(MockResource("after"))

        result = executor.apply(executor.plan())

        assert not result.success
        assert result.outcomes["mock:broken"] == Outcome.FAILED
        assert result.outcomes["mock:after"] == Outcome.CONVERGED
        assert isinstance(result.errors["mock:broken"], PermissionDenied)
        assert broken.applied == 0
        assert after.applied == 1

    def test_plan_error_reported_as_failed(self, mock_transport, platform):
        executor = Executor(platform=platform, transport=mock_transport)
        executor.add(MockResource("unreadable", fail_plan=True))
        executor.add(MockResource("fine"))

        plan_result = executor.plan()
        assert plan_result.has_errors
        assert "mock:unreadable" not in plan_result.plans

        result = executor.apply(plan_result)
        assert result.outcomes["mock:unreadable"] == Outcome.FAILED
        assert result.outcomes["mock:fine"] == Outcome.CONVERGED

    def test_converge_second_run_is_compliant(self, mock_transport, platform):
        resource = MockResource("once")
        executor = Executor(platform=platform, transport=mock_transport)
        executor.add(resource)
        executor.converge()

        result = executor.converge()

        assert result.with_outcome(Outcome.COMPLIANT) == ["mock:once"]
        assert resource.applied == 1

    def test_warns_when_generated_values_are_unstable(self, mock_transport, platform, cookbook, caplog):
        executor = Executor(platform=platform, transport=mock_transport)
        executor.add(
            Template("/qux.txt", source="app_setup/qux.txt.j2", variables={"var": generated_uuid("k")}),
            cookbook=cookbook,
        )

        with caplog.at_level(logging.WARNING):
            executor.plan()

        assert "re-render on every run" in caplog.text

    def test_no_warning_with_stable_values(self, mock_transport, platform, cookbook, caplog):
        executor = Executor(platform=platform, transport=mock_transport, values=SeededValues(1))
        executor.add(
            Template("/qux.txt", source="app_setup/qux.txt.j2", variables={"var": generated_uuid("k")}),
            cookbook=cookbook,
        )

        with caplog.at_level(logging.WARNING):
            executor.plan()

        assert "re-render" not in caplog.text


class TestExecutorState:
    """State tracking after apply."""

    def test_records_outcomes_and_history(self, mock_transport, platform, store):
        executor = Executor(platform=platform, transport=mock_transport, config_file="demo.py")
        executor.enable_state_tracking(store)
        executor.add(MockResource("new"))
        executor.add(MockResource("old", exists=True))
        executor.add(MockResource("bad", fail_apply=True))

        executor.apply(executor.plan())

        assert store.get_resource("mock:new").status == "converged"
        assert store.get_resource("mock:old").status == "compliant"
        assert store.get_resource("mock:bad").status == "failed"
        assert store.get_resource("mock:new").config_file == "demo.py"

        history = store.get_history("mock:new")
        assert len(history) == 1
        assert history[0].action == "create"
        assert history[0].success

        failed = store.get_history("mock:bad")
        assert not failed[0].success
        assert "cannot write" in failed[0].error

        assert store.get_history("mock:old") == []
