"""
warden.engine.effects — Best-Effort Effect Runner
==================================================

After a decision commits, every follow-up (role grant, DM, ticket close,
card refresh, welcome post) is an *effect*: a named coroutine factory that
may succeed, skip, or fail without affecting the decision.

:func:`run_effects` executes ``(name, effect)`` pairs **in order**, each
under its own timeout, and turns whatever happens into an
:class:`EffectOutcome`.  An effect may return its own outcome (to report a
skip or a classified failure) or ``None`` for plain success.  Exceptions
never escape the runner.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

__all__ = ["EffectStatus", "EffectOutcome", "Effect", "run_effects"]


class EffectStatus(enum.StrEnum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class EffectOutcome:
    """What happened to one effect.

    ``warning`` is a user-facing line appended to the decision summary;
    ``detail`` is for logs and audit metadata only.
    """

    name: str
    status: EffectStatus = EffectStatus.OK
    detail: str | None = None
    warning: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is EffectStatus.OK

    @classmethod
    def skipped(cls, name: str, detail: str | None = None, warning: str | None = None) -> EffectOutcome:
        return cls(name, EffectStatus.SKIPPED, detail, warning)

    @classmethod
    def failed(cls, name: str, detail: str | None = None, warning: str | None = None) -> EffectOutcome:
        return cls(name, EffectStatus.FAILED, detail, warning)


Effect = Callable[[], Awaitable["EffectOutcome | None"]]


async def run_effects(
    steps: Sequence[tuple[str, Effect]],
    *,
    timeout: float,
    context: dict | None = None,
) -> list[EffectOutcome]:
    """Run *steps* sequentially and collect one outcome per step.

    Parameters
    ----------
    steps:
        ``(name, effect)`` pairs.  ``effect()`` must return an awaitable.
    timeout:
        Seconds allowed for each effect before it is reported as failed.
    context:
        Extra fields for log lines (application id, guild id, …).
    """
    log_ctx = context or {}
    outcomes: list[EffectOutcome] = []

    for name, effect in steps:
        try:
            result = await asyncio.wait_for(effect(), timeout=timeout)
        except TimeoutError:
            logger.warning("Effect %s timed out after %.1fs %s", name, timeout, log_ctx)
            outcomes.append(EffectOutcome.failed(
                name,
                detail=f"timed out after {timeout:g}s",
                warning=f"{_label(name)} timed out.",
            ))
            continue
        except Exception as exc:
            logger.exception("Effect %s failed %s", name, log_ctx)
            outcomes.append(EffectOutcome.failed(
                name,
                detail=str(exc) or type(exc).__name__,
                warning=f"{_label(name)} failed: {exc or type(exc).__name__}.",
            ))
            continue

        outcome = result if isinstance(result, EffectOutcome) else EffectOutcome(name)
        if outcome.status is EffectStatus.FAILED:
            logger.warning("Effect %s failed: %s %s", name, outcome.detail, log_ctx)
        else:
            logger.debug("Effect %s → %s %s", name, outcome.status, log_ctx)
        outcomes.append(outcome)

    return outcomes


def _label(name: str) -> str:
    return name.replace("_", " ").capitalize()
