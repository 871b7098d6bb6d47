"""
Executor - the convergence engine.

The executor:
1. Binds recipe resources to a transport, cookbook and value provider
2. Plans every resource against the target
3. Applies changes in declaration order
4. Reports a per-resource outcome and optionally records state
"""

import os
import socket
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, TYPE_CHECKING

from pantry.core.resource import Resource, Plan, Platform
from pantry.logging import get_logger
from pantry.transport import Transport, LocalTransport
from pantry.values import ValueProvider, RandomValues

if TYPE_CHECKING:
    from pantry.cookbook import Cookbook, Recipe
    from pantry.state import Store

logger = get_logger(__name__)


class Outcome(Enum):
    """What happened to a resource during a run."""
    CONVERGED = "converged"  # changed to match the declaration
    COMPLIANT = "compliant"  # already matched, nothing done
    FAILED = "failed"


@dataclass
class PlanResult:
    """Plans for all resources, plus planning errors keyed by resource id."""
    plans: Dict[str, Plan] = field(default_factory=dict)
    errors: Dict[str, Exception] = field(default_factory=dict)

    @property
    def change_count(self) -> int:
        return sum(1 for plan in self.plans.values() if plan.has_changes())

    @property
    def has_changes(self) -> bool:
        return self.change_count > 0

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0


@dataclass
class ApplyResult:
    """Outcome of a run, per resource, in declaration order."""
    changed_resources: List[str] = field(default_factory=list)
    errors: Dict[str, Exception] = field(default_factory=dict)
    outcomes: Dict[str, Outcome] = field(default_factory=dict)
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    def with_outcome(self, outcome: Outcome) -> List[str]:
        return [rid for rid, o in self.outcomes.items() if o == outcome]


class Executor:
    """
    Resource executor implementing the plan/apply workflow.

    Example:
        executor = Executor(values=SeededValues("prod"))
        executor.load(recipe)

        plan_result = executor.plan()
        print(f"Will change {plan_result.change_count} resources")

        apply_result = executor.apply(plan_result)
        for resource_id, outcome in apply_result.outcomes.items():
            print(resource_id, outcome.value)
    """

    def __init__(
        self,
        platform: Optional[Platform] = None,
        transport: Optional[Transport] = None,
        values: Optional[ValueProvider] = None,
        config_file: Optional[str] = None,
    ):
        """
        Args:
            platform: Platform info (detected through the transport if None)
            transport: Transport to the target (default: LocalTransport)
            values: Provider for generated template values (default: RandomValues)
            config_file: Recipe file path, recorded with state
        """
        self.transport = transport or LocalTransport()
        self.values = values or RandomValues()
        self.config_file = config_file
        self.resources: List[Resource] = []
        self._platform = platform
        self._registry: Dict[str, Resource] = {}
        self._store: Optional["Store"] = None
        self._enable_state = False

    @property
    def platform(self) -> Platform:
        if self._platform is None:
            self._platform = Platform.detect(self.transport)
            logger.debug("Detected platform %s", self._platform)
        return self._platform

    def add(self, resource: Resource, cookbook: Optional["Cookbook"] = None) -> Resource:
        """
        Bind a resource to this executor.

        Raises:
            ValueError: If a resource with the same id was already added
        """
        if resource.id in self._registry:
            raise ValueError(f"Duplicate resource: {resource.id}")

        resource._transport = self.transport
        resource._values = self.values
        if cookbook is not None:
            resource._cookbook = cookbook

        self.resources.append(resource)
        self._registry[resource.id] = resource
        return resource

    def load(self, recipe: "Recipe") -> None:
        """Add every resource of a recipe, resolving sources against its cookbook."""
        logger.info("Loading recipe %s (%d resources)", recipe.id, len(recipe))
        for resource in recipe:
            self.add(resource, cookbook=recipe.cookbook)

    def get(self, resource_id: str) -> Optional[Resource]:
        return self._registry.get(resource_id)

    def enable_state_tracking(self, store: Optional["Store"] = None) -> None:
        """Record state and history after apply (default store: Store())."""
        self._enable_state = True
        self._store = store

    def plan(self) -> PlanResult:
        result = PlanResult()

        for resource in self.resources:
            try:
                result.plans[resource.id] = resource.plan(self.platform)
            except Exception as e:
                logger.error("Planning %s failed: %s", resource.id, e)
                result.errors[resource.id] = e
                continue

            if getattr(resource, "uses_generated_values", False) and not self.values.stable:
                logger.warning(
                    "%s binds generated values from %s; it will re-render on every run",
                    resource.id, self.values.__class__.__name__,
                )

        return result

    def apply(self, plan_result: PlanResult) -> ApplyResult:
        """
        Apply a plan. A failing resource does not stop the others.

        Resources whose planning failed are reported as failed too.
        """
        result = ApplyResult()
        start_time = time.time()

        for resource in self.resources:
            if resource.id in plan_result.errors:
                result.errors[resource.id] = plan_result.errors[resource.id]
                result.outcomes[resource.id] = Outcome.FAILED
                continue

            plan = plan_result.plans.get(resource.id)
            if plan is None:
                continue
            if not plan.has_changes():
                result.outcomes[resource.id] = Outcome.COMPLIANT
                continue

            try:
                resource.apply(plan, self.platform)
                resource._actual_state = resource.check(self.platform)
            except Exception as e:
                logger.error("Applying %s failed: %s", resource.id, e)
                result.errors[resource.id] = e
                result.outcomes[resource.id] = Outcome.FAILED
                continue

            result.changed_resources.append(resource.id)
            result.outcomes[resource.id] = Outcome.CONVERGED

        result.duration = time.time() - start_time

        if self._enable_state:
            self._save_state(plan_result, result)

        return result

    def converge(self, recipe: Optional["Recipe"] = None) -> ApplyResult:
        """Load (optionally), plan and apply in one call."""
        if recipe is not None:
            self.load(recipe)
        return self.apply(self.plan())

    def _save_state(self, plan_result: PlanResult, apply_result: ApplyResult) -> None:
        from pantry.state import Store, ResourceState, HistoryEntry

        store = self._store or Store()
        user = os.getenv("USER", "unknown")
        hostname = socket.gethostname()
        timestamp = datetime.now()

        try:
            for resource in self.resources:
                outcome = apply_result.outcomes.get(resource.id)
                if outcome is None:
                    continue

                store.save_resource(ResourceState(
                    id=resource.id,
                    type=resource.resource_type(),
                    desired_state=resource._desired_state,
                    actual_state=resource._actual_state,
                    applied_at=timestamp,
                    applied_by=user,
                    hostname=hostname,
                    config_file=self.config_file or "unknown",
                    status=outcome.value,
                ))

                plan = plan_result.plans.get(resource.id)
                if outcome == Outcome.COMPLIANT or plan is None:
                    continue

                error = apply_result.errors.get(resource.id)
                store.add_history(HistoryEntry(
                    timestamp=timestamp,
                    resource_id=resource.id,
                    action=plan.action.value,
                    user=user,
                    hostname=hostname,
                    success=outcome == Outcome.CONVERGED,
                    changes={c.field: {"from": c.from_value, "to": c.to_value}
                             for c in plan.changes},
                    error=str(error) if error else None,
                ))
        finally:
            if self._store is None:
                store.close()

    def clear(self) -> None:
        self.resources.clear()
        self._registry.clear()
