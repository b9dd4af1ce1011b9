"""
tests/test_decision_service.py — Decision Transaction Tests
============================================================

The conditional UPDATE is the only gate between ``submitted`` and a
terminal status.  These tests pin down idempotence, mutual exclusion, and
the audit row written in the same transaction.
"""

from __future__ import annotations

import threading

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from warden.constants import MAX_REASON_LENGTH
from warden.database.models import Application, ApplicationStatus, Base, ReviewAction
from warden.engine.decisions import (
    Approve,
    Kick,
    OutcomeKind,
    Reject,
    action_kind,
    classify_existing,
    target_status,
)
from warden.services.application_service import start_application, submit_application
from warden.services.audit_service import actions_for
from warden.services.decision_service import decide, record_blocked_attempt

MOD_A = 111
MOD_B = 222


def _row(engine, app_id: str) -> Application:
    with Session(engine) as session:
        app = session.get(Application, app_id)
        session.expunge(app)
        return app


class TestDecisionVariants:
    def test_reject_requires_reason(self):
        with pytest.raises(ValueError, match="Reason is required"):
            Reject("   ")

    def test_reject_reason_is_stripped(self):
        assert Reject("  spam  ").reason == "spam"

    def test_kick_requires_reason(self):
        with pytest.raises(ValueError, match="Reason is required"):
            Kick("  ")
        with pytest.raises(TypeError):
            Kick()

    def test_reason_length_is_capped(self):
        Kick("x" * MAX_REASON_LENGTH)
        with pytest.raises(ValueError, match="Reason too long"):
            Kick("x" * (MAX_REASON_LENGTH + 1))
        with pytest.raises(ValueError, match="Reason too long"):
            Reject("x" * (MAX_REASON_LENGTH + 1))

    def test_target_status(self):
        assert target_status(Approve()) is ApplicationStatus.APPROVED
        assert target_status(Reject("no")) is ApplicationStatus.REJECTED
        assert target_status(Kick("alt")) is ApplicationStatus.KICKED

    def test_permanent_reject_has_its_own_action(self):
        assert action_kind(Reject("no", permanent=True)) == "perm_reject"
        assert action_kind(Reject("no")) == "reject"

    def test_classify_existing(self):
        assert classify_existing(Approve(), None).kind is OutcomeKind.INVALID
        assert classify_existing(Approve(), "pending").kind is OutcomeKind.INVALID
        assert classify_existing(Approve(), "approved").kind is OutcomeKind.ALREADY
        terminal = classify_existing(Reject("x"), "approved")
        assert terminal.kind is OutcomeKind.TERMINAL
        assert terminal.status is ApplicationStatus.APPROVED


class TestDecide:
    def test_approve_applies_and_audits(self, db_engine, submitted_app):
        app = submitted_app()
        outcome = decide(db_engine, app.id, Approve("welcome aboard"), MOD_A)

        assert outcome.kind is OutcomeKind.APPLIED
        assert outcome.status is ApplicationStatus.APPROVED
        row = _row(db_engine, app.id)
        assert row.status == "approved"
        assert row.resolver_id == MOD_A
        assert row.resolution_reason == "welcome aboard"
        assert row.resolved_at is not None

        audit = actions_for(db_engine, app.id, action="approve")
        assert len(audit) == 1
        assert audit[0].id == outcome.action_id
        assert audit[0].actor_id == MOD_A

    def test_same_decision_twice_is_already(self, db_engine, submitted_app):
        app = submitted_app()
        first = decide(db_engine, app.id, Approve(), MOD_A)
        before = _row(db_engine, app.id)

        second = decide(db_engine, app.id, Approve(), MOD_B)

        assert first.kind is OutcomeKind.APPLIED
        assert second.kind is OutcomeKind.ALREADY
        after = _row(db_engine, app.id)
        assert after.resolver_id == before.resolver_id == MOD_A
        assert after.resolved_at == before.resolved_at
        assert len(actions_for(db_engine, app.id, action="approve")) == 1

    def test_competing_decisions_one_wins(self, db_engine, submitted_app):
        """Both moderators saw 'submitted'; only the first commit lands."""
        app = submitted_app()
        assert _row(db_engine, app.id).status == "submitted"
        assert _row(db_engine, app.id).status == "submitted"

        won = decide(db_engine, app.id, Reject("not a fit"), MOD_A)
        lost = decide(db_engine, app.id, Approve(), MOD_B)

        assert won.kind is OutcomeKind.APPLIED
        assert lost.kind is OutcomeKind.TERMINAL
        assert lost.status is ApplicationStatus.REJECTED
        assert _row(db_engine, app.id).status == "rejected"
        assert actions_for(db_engine, app.id, action="approve") == []

    def test_pending_application_is_invalid(self, db_engine):
        app = start_application(db_engine, 100, 555555).application
        outcome = decide(db_engine, app.id, Approve(), MOD_A)

        assert outcome.kind is OutcomeKind.INVALID
        assert outcome.status is ApplicationStatus.PENDING
        assert _row(db_engine, app.id).status == "pending"
        assert actions_for(db_engine, app.id) == []

    def test_missing_application_is_invalid(self, db_engine):
        outcome = decide(db_engine, "does-not-exist", Kick("alt account"), MOD_A)
        assert outcome.kind is OutcomeKind.INVALID
        assert outcome.status is None

    def test_permanent_reject_sets_flag(self, db_engine, submitted_app):
        app = submitted_app()
        outcome = decide(db_engine, app.id, Reject("raid account", permanent=True), MOD_A)

        assert outcome.status is ApplicationStatus.REJECTED
        assert _row(db_engine, app.id).permanently_rejected is True
        assert [a.action for a in actions_for(db_engine, app.id)] == ["perm_reject"]

    def test_kick_then_reject_is_terminal(self, db_engine, submitted_app):
        app = submitted_app()
        decide(db_engine, app.id, Kick("alt account"), MOD_A)
        outcome = decide(db_engine, app.id, Reject("late"), MOD_B)
        assert outcome.kind is OutcomeKind.TERMINAL
        assert outcome.status is ApplicationStatus.KICKED


class TestConcurrentDecisions:
    def test_racing_decisions_exactly_one_applies(self, tmp_path):
        """Two moderators decide at the same moment on separate connections."""
        engine = create_engine(
            f"sqlite:///{tmp_path / 'race.db'}", connect_args={"timeout": 30}
        )
        Base.metadata.create_all(engine)
        app = start_application(engine, 100, 424242).application
        assert submit_application(engine, app.id)

        barrier = threading.Barrier(2)
        outcomes = {}

        def worker(name, decision, actor):
            barrier.wait()
            outcomes[name] = decide(engine, app.id, decision, actor)

        threads = [
            threading.Thread(target=worker, args=("approve", Approve(), MOD_A)),
            threading.Thread(target=worker, args=("kick", Kick("alt account"), MOD_B)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        try:
            assert sorted(o.kind for o in outcomes.values()) == sorted(
                [OutcomeKind.APPLIED, OutcomeKind.TERMINAL]
            )
            winner = next(name for name, o in outcomes.items() if o.applied)
            primary = [
                a for a in actions_for(engine, app.id) if a.action in ("approve", "kick")
            ]
            assert [a.action for a in primary] == [winner]
            assert _row(engine, app.id).status == outcomes[winner].status.value
        finally:
            engine.dispose()


class TestRecordBlockedAttempt:
    def test_writes_decision_blocked_row(self, db_engine, submitted_app):
        app = submitted_app()
        decide(db_engine, app.id, Approve(), MOD_A)
        lost = decide(db_engine, app.id, Reject("too late"), MOD_B)

        record_blocked_attempt(db_engine, app.id, Reject("too late"), MOD_B, lost)

        with Session(db_engine) as session:
            rows = session.scalars(
                select(ReviewAction).where(ReviewAction.action == "decision_blocked")
            ).all()
            assert len(rows) == 1
            assert rows[0].actor_id == MOD_B
            assert rows[0].meta["attempted"] == "reject"
            assert rows[0].meta["observed_status"] == "approved"
            assert rows[0].meta["outcome"] == "terminal"
