"""
Aggregation engine for multi-operation commands.

Two execution strategies sit on top of the resource operation capability:

- :func:`collect` fans out independent reads concurrently and waits for all
  of them to settle. A failed read never aborts the others; it is simply
  missing from the result map, which is how report formatting learns that a
  data source was unavailable.
- :func:`execute` runs an ordered plan of mutating steps one at a time with
  continue-on-error semantics and reports overall success only if every
  step succeeded.

Both accept an optional per-action deadline so a hung remote call cannot
block a command forever.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, Mapping, Optional, Sequence, TypeVar

from .errors import PlanIncomplete
from .runtime_types import PlanReporter

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Zero-argument async action
Action = Callable[[], Awaitable[Any]]

__all__ = [
    "Action",
    "CollectionResult",
    "CollectionJob",
    "collect",
    "PlanStep",
    "PlanOutcome",
    "NullReporter",
    "execute",
]


@dataclass
class CollectionResult:
    """
    Outcome of a fan-out: results by name plus what failed.

    A name appears in exactly one of ``results`` or ``errors``.
    """
    results: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, BaseException] = field(default_factory=dict)
    completed: int = 0

    @property
    def failures(self) -> int:
        return len(self.errors)

    def get(self, name: str, default: Any = None) -> Any:
        return self.results.get(name, default)

    def __contains__(self, name: str) -> bool:
        return name in self.results


async def _settle(awaitable: Awaitable[Any], timeout: Optional[float]) -> Any:
    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout)


async def collect(actions: Mapping[str, Action], *, timeout: Optional[float] = None) -> CollectionResult:
    """
    Run independent actions concurrently and wait for every one to settle.

    Args:
        actions: Named zero-argument async actions
        timeout: Optional deadline per action in seconds; an action that
            misses it counts as failed

    Returns:
        CollectionResult whose ``results`` holds one entry per successful
        action and whose ``errors`` holds one entry per failed action
    """
    outcome = CollectionResult()

    async def run_one(name: str, action: Action) -> None:
        try:
            value = await _settle(action(), timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"{name}: {type(e).__name__}: {e}")
            outcome.errors[name] = e
        else:
            outcome.results[name] = value
        finally:
            outcome.completed += 1

    await asyncio.gather(*(run_one(name, action) for name, action in actions.items()))

    if outcome.completed != len(actions):
        raise RuntimeError(f"collector settled {outcome.completed} of {len(actions)} actions")
    return outcome


@dataclass(frozen=True)
class CollectionJob(Generic[T]):
    """Named independent reads plus the merge that turns them into output."""
    actions: Mapping[str, Action]
    merge: Callable[[CollectionResult], T]

    async def run(self, *, timeout: Optional[float] = None) -> T:
        """Collect all actions, then merge exactly once."""
        return self.merge(await collect(self.actions, timeout=timeout))


@dataclass(frozen=True)
class PlanStep:
    """
    One step of a sequential plan.

    ``action`` fails by raising or by returning ``False``; any other return
    value is success.
    """
    progress: str
    action: Action
    success: str
    failure: str


@dataclass(frozen=True)
class PlanOutcome:
    executed: int
    failures: int

    @property
    def succeeded(self) -> bool:
        return self.failures == 0

    @property
    def empty(self) -> bool:
        """True when the plan had no steps, i.e. there was nothing to do."""
        return self.executed == 0

    def raise_for_failures(self) -> None:
        if self.failures:
            raise PlanIncomplete(self.failures, self.executed)


class NullReporter:
    """Reporter that discards all progress."""

    def step_started(self, label: str) -> None:
        pass

    def step_succeeded(self, label: str) -> None:
        pass

    def step_failed(self, label: str) -> None:
        pass


async def _run_step(step: PlanStep, timeout: Optional[float]) -> bool:
    try:
        result = await _settle(step.action(), timeout)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(f"{step.failure}: {type(e).__name__}: {e}")
        return False
    return result is not False


async def execute(plan: Sequence[PlanStep], reporter: Optional[PlanReporter] = None, *,
                  timeout: Optional[float] = None) -> PlanOutcome:
    """
    Run plan steps strictly in order, continuing past failures.

    Each step starts only after the previous one settled. A failing step is
    counted and reported through its failure label, then the next step runs.

    Args:
        plan: Ordered steps
        reporter: Presentation sink for per-step progress
        timeout: Optional deadline per step in seconds

    Returns:
        PlanOutcome with the number of steps run and how many failed
    """
    reporter = reporter or NullReporter()
    failures = 0

    for index, step in enumerate(plan):
        logger.debug(f"plan step {index + 1}/{len(plan)}: {step.progress}")
        reporter.step_started(step.progress)
        if await _run_step(step, timeout):
            reporter.step_succeeded(step.success)
        else:
            failures += 1
            reporter.step_failed(step.failure)

    return PlanOutcome(executed=len(plan), failures=failures)
