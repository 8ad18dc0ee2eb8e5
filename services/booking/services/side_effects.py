"""
Capture the outcome of best-effort side effects.

Everything that happens after a booking transaction commits (meeting
provisioning, slot toggling, analytics, notifications, reminders) is run
through here. Each effect succeeds or fails on its own and the results are
collected into a report instead of being raised.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple

from services.common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class SideEffectOutcome:
    name: str
    ok: bool
    error: Optional[str] = None
    result: Any = None

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "ok": self.ok, "error": self.error}


@dataclass
class SideEffectReport:
    outcomes: List[SideEffectOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def failed(self) -> List[SideEffectOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def get(self, name: str) -> Optional[SideEffectOutcome]:
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        return None

    def record(self, outcome: SideEffectOutcome) -> None:
        self.outcomes.append(outcome)

    def extend(self, other: "SideEffectReport") -> None:
        self.outcomes.extend(other.outcomes)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "effects": [outcome.as_dict() for outcome in self.outcomes],
        }


def _describe(exc: BaseException) -> str:
    message = getattr(exc, "message", None) or str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


def outcome_from(
    name: str, result: Any, booking_id: Optional[str] = None
) -> SideEffectOutcome:
    if isinstance(result, BaseException):
        logger.warning(
            "Side effect failed",
            effect=name,
            booking_id=booking_id,
            error=_describe(result),
        )
        return SideEffectOutcome(name=name, ok=False, error=_describe(result))
    return SideEffectOutcome(name=name, ok=True, result=result)


async def run_one(
    name: str, effect: Awaitable[Any], booking_id: Optional[str] = None
) -> SideEffectOutcome:
    """Await a single effect, turning any exception into a failed outcome."""
    try:
        result = await effect
    except Exception as e:
        return outcome_from(name, e, booking_id)
    return outcome_from(name, result, booking_id)


async def run_side_effects(
    effects: Sequence[Tuple[str, Awaitable[Any]]],
    booking_id: Optional[str] = None,
) -> SideEffectReport:
    """Run named effects concurrently; no failure reaches the caller."""
    if not effects:
        return SideEffectReport()

    names = [name for name, _ in effects]
    results = await asyncio.gather(
        *(effect for _, effect in effects), return_exceptions=True
    )

    report = SideEffectReport()
    for name, result in zip(names, results):
        report.record(outcome_from(name, result, booking_id))
    return report
