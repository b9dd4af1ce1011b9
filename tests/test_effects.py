"""
tests/test_effects.py — Effect Runner Tests
============================================
"""

from __future__ import annotations

import asyncio

from warden.engine.effects import EffectOutcome, EffectStatus, run_effects


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


class TestRunEffects:
    def test_runs_in_order(self):
        calls: list[str] = []

        def step(name):
            async def _effect():
                calls.append(name)
            return _effect

        outcomes = run_async(run_effects(
            [("a", step("a")), ("b", step("b")), ("c", step("c"))], timeout=1,
        ))

        assert calls == ["a", "b", "c"]
        assert [o.name for o in outcomes] == ["a", "b", "c"]
        assert all(o.ok for o in outcomes)

    def test_exception_becomes_failed_and_later_steps_run(self):
        ran = []

        async def boom():
            raise RuntimeError("discord exploded")

        async def after():
            ran.append(True)

        outcomes = run_async(run_effects(
            [("role_grant", boom), ("dm", after)], timeout=1,
        ))

        assert outcomes[0].status is EffectStatus.FAILED
        assert outcomes[0].warning == "Role grant failed: discord exploded."
        assert outcomes[1].ok
        assert ran == [True]

    def test_timeout_becomes_failed(self):
        async def slow():
            await asyncio.sleep(5)

        outcomes = run_async(run_effects([("welcome", slow)], timeout=0.01))

        assert outcomes[0].status is EffectStatus.FAILED
        assert outcomes[0].warning == "Welcome timed out."

    def test_returned_outcome_is_kept(self):
        async def skip():
            return EffectOutcome.skipped("modmail_close", detail="no open ticket")

        outcomes = run_async(run_effects([("modmail_close", skip)], timeout=1))

        assert outcomes[0].status is EffectStatus.SKIPPED
        assert outcomes[0].detail == "no open ticket"
        assert outcomes[0].warning is None
