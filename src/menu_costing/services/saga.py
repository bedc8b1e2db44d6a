"""
Saga - an ordered list of independent persistence calls.

The persistence collaborator has no batch endpoints, so bulk effects (flushing
a draft recipe's lines, attaching several recipes to an event) are composed
as a sequence of single-entity calls. Steps run strictly one after another;
a failing step is recorded and the remaining steps still run. The caller
gets a SagaReport with one outcome per step instead of an all-or-nothing
result.

Usage:
    saga = Saga("flush_draft_lines", recipe_id=recipe.id)
    for line in draft_lines:
        saga.add(line.ingredient_id, recipe_service.add_line, recipe.id, line)
    report = saga.run()
    if report.has_failures:
        ...
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from menu_costing.services.exceptions import ServiceError
from menu_costing.services.logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


@dataclass
class StepOutcome:
    """Result of one saga step."""

    key: Any
    succeeded: bool
    result: Any = None
    error: Optional[ServiceError] = None


@dataclass
class SagaReport:
    """Per-step outcomes of a saga, in execution order."""

    operation: str
    outcomes: List[StepOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[StepOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> List[StepOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def outcome_for(self, key: Any) -> Optional[StepOutcome]:
        """First outcome recorded under ``key``, or None."""
        for outcome in self.outcomes:
            if outcome.key == key:
                return outcome
        return None


class Saga:
    """
    Ordered sequence of independently failing calls.

    Only service-layer errors (ServiceError and subclasses, which include
    wrapped database failures) are recorded as step failures; anything else
    is a programming error and propagates.
    """

    def __init__(self, operation: str, **context: Any):
        self.operation = operation
        self.context = context
        self._steps: List[Tuple[Any, Callable[..., Any], tuple, dict]] = []

    def add(self, key: Any, func: Callable[..., Any], *args: Any, **kwargs: Any) -> "Saga":
        """Append a step; ``key`` identifies it in the report."""
        self._steps.append((key, func, args, kwargs))
        return self

    def __len__(self) -> int:
        return len(self._steps)

    def run(self) -> SagaReport:
        """Execute all steps in order and report each outcome."""
        report = SagaReport(operation=self.operation)

        for key, func, args, kwargs in self._steps:
            try:
                result = func(*args, **kwargs)
            except ServiceError as e:
                log_operation(
                    logger,
                    operation=self.operation,
                    outcome="step_failed",
                    level=logging.WARNING,
                    step=key,
                    error=str(e),
                    **self.context,
                )
                report.outcomes.append(StepOutcome(key=key, succeeded=False, error=e))
                continue
            report.outcomes.append(StepOutcome(key=key, succeeded=True, result=result))

        log_operation(
            logger,
            operation=self.operation,
            outcome="partial_failure" if report.has_failures else "success",
            level=logging.WARNING if report.has_failures else logging.INFO,
            steps=len(report.outcomes),
            failed=len(report.failed),
            **self.context,
        )
        return report
