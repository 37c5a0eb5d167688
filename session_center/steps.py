"""Explicit, named step plans for multi-stage workspace operations.

A plan runs its steps in order against a shared context dict. A step returns
``None`` to continue or a ``StepOutcome`` to stop the plan early; exceptions
propagate with the failing step's name logged.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from diagnostics import tracing

logger = logging.getLogger(__name__)


class StepOutcome(str, enum.Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    SUSPENDED = "suspended"
    SUPERSEDED = "superseded"


StepFn = Callable[[Dict[str, Any]], Awaitable[Optional[StepOutcome]]]
StepHook = Callable[[str, Dict[str, Any]], None]


@dataclass(frozen=True)
class Step:
    name: str
    run: StepFn


@dataclass
class PlanResult:
    outcome: StepOutcome
    context: Dict[str, Any] = field(default_factory=dict)
    completed_steps: List[str] = field(default_factory=list)
    halted_at: Optional[str] = None


class StepPlan:
    def __init__(self, name: str, steps: Sequence[Step], *, on_step: Optional[StepHook] = None):
        names = [step.name for step in steps]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate step names in plan {name}: {names}")
        self.name = name
        self._steps = tuple(steps)
        self._on_step = on_step

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self._steps]

    async def run(self, context: Optional[Dict[str, Any]] = None) -> PlanResult:
        ctx: Dict[str, Any] = context if context is not None else {}
        result = PlanResult(outcome=StepOutcome.COMPLETED, context=ctx)
        with tracing.span(f"plan.{self.name}", plan=self.name) as sp:
            for step in self._steps:
                if self._on_step is not None:
                    self._on_step(step.name, ctx)
                try:
                    outcome = await step.run(ctx)
                except Exception:
                    logger.warning("plan step failed plan=%s step=%s", self.name, step.name)
                    sp.set(failed_step=step.name)
                    raise
                if outcome is not None and outcome is not StepOutcome.COMPLETED:
                    result.outcome = outcome
                    result.halted_at = step.name
                    logger.info("plan halted plan=%s step=%s outcome=%s", self.name, step.name, outcome.value)
                    break
                result.completed_steps.append(step.name)
            sp.set(outcome=result.outcome.value)
        return result
