"""
tests/test_claim_service.py — Review Claim Tests
=================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from warden.engine.decisions import Approve, OutcomeKind, Reject
from warden.services.application_service import start_application
from warden.services.audit_service import actions_for
from warden.services.claim_service import (
    ClaimInfo,
    ClaimKind,
    claim,
    claim_guard,
    clear_claim,
    get_claim,
    unclaim,
)
from warden.services.decision_service import decide

MOD_A = 111
MOD_B = 222


class TestClaimGuard:
    def test_unclaimed_passes(self):
        assert claim_guard(None, MOD_A) is None

    def test_holder_passes(self):
        info = ClaimInfo("app", MOD_A, datetime.now(UTC))
        assert claim_guard(info, MOD_A) is None

    def test_other_actor_is_refused(self):
        info = ClaimInfo("app", MOD_A, datetime.now(UTC))
        message = claim_guard(info, MOD_B)
        assert message == (
            f"This application is claimed by <@{MOD_A}>. Ask them to finish or unclaim it."
        )


class TestClaim:
    def test_claim_and_audit(self, db_engine, submitted_app):
        app = submitted_app()
        result = claim(db_engine, app.id, MOD_A)

        assert result.kind is ClaimKind.CLAIMED
        assert result.holder_id == MOD_A
        assert get_claim(db_engine, app.id).reviewer_id == MOD_A
        assert [a.action for a in actions_for(db_engine, app.id)] == ["claim"]

    def test_reclaim_by_holder_is_idempotent(self, db_engine, submitted_app):
        app = submitted_app()
        claim(db_engine, app.id, MOD_A)
        again = claim(db_engine, app.id, MOD_A)

        assert again.kind is ClaimKind.CLAIMED
        assert len(actions_for(db_engine, app.id, action="claim")) == 1

    def test_second_reviewer_sees_holder(self, db_engine, submitted_app):
        app = submitted_app()
        claim(db_engine, app.id, MOD_A)
        result = claim(db_engine, app.id, MOD_B)

        assert result.kind is ClaimKind.ALREADY_CLAIMED
        assert result.holder_id == MOD_A

    def test_missing_application(self, db_engine):
        assert claim(db_engine, "nope", MOD_A).kind is ClaimKind.NOT_FOUND

    def test_terminal_application(self, db_engine, submitted_app):
        app = submitted_app()
        decide(db_engine, app.id, Approve(), MOD_A)
        result = claim(db_engine, app.id, MOD_B)
        assert result.kind is ClaimKind.TERMINAL
        assert result.status == "approved"


class TestExpiry:
    def test_expired_claim_is_removed_and_audited(self, db_engine, submitted_app):
        app = submitted_app()
        past = datetime.now(UTC) - timedelta(hours=3)
        claim(db_engine, app.id, MOD_A, now=past)

        assert get_claim(db_engine, app.id, ttl_minutes=60) is None
        assert get_claim(db_engine, app.id) is None
        expired = actions_for(db_engine, app.id, action="claim_expired")
        assert len(expired) == 1
        assert expired[0].meta["ttl_minutes"] == 60

    def test_fresh_claim_survives_ttl(self, db_engine, submitted_app):
        app = submitted_app()
        claim(db_engine, app.id, MOD_A)
        assert get_claim(db_engine, app.id, ttl_minutes=60).reviewer_id == MOD_A

    def test_expired_claim_can_be_taken_over(self, db_engine, submitted_app):
        app = submitted_app()
        claim(db_engine, app.id, MOD_A, now=datetime.now(UTC) - timedelta(hours=5))
        result = claim(db_engine, app.id, MOD_B, ttl_minutes=120)

        assert result.kind is ClaimKind.CLAIMED
        assert result.holder_id == MOD_B


class TestUnclaim:
    def test_owner_can_unclaim(self, db_engine, submitted_app):
        app = submitted_app()
        claim(db_engine, app.id, MOD_A)

        result = unclaim(db_engine, app.id, MOD_A)

        assert result.kind is ClaimKind.UNCLAIMED
        assert get_claim(db_engine, app.id) is None
        assert len(actions_for(db_engine, app.id, action="unclaim")) == 1

    def test_non_owner_cannot_unclaim(self, db_engine, submitted_app):
        app = submitted_app()
        claim(db_engine, app.id, MOD_A)

        result = unclaim(db_engine, app.id, MOD_B)

        assert result.kind is ClaimKind.NOT_OWNER
        assert get_claim(db_engine, app.id).reviewer_id == MOD_A

    def test_unclaim_without_claim(self, db_engine, submitted_app):
        app = submitted_app()
        assert unclaim(db_engine, app.id, MOD_A).kind is ClaimKind.NOT_CLAIMED

    def test_clear_claim(self, db_engine, submitted_app):
        app = submitted_app()
        claim(db_engine, app.id, MOD_A)
        assert clear_claim(db_engine, app.id) is True
        assert clear_claim(db_engine, app.id) is False


class TestClaimIsAdvisory:
    def test_bypassing_the_guard_cannot_double_decide(self, db_engine, submitted_app):
        app = submitted_app()
        claim(db_engine, app.id, MOD_A)

        # MOD_B ignores the claim and decides directly.
        first = decide(db_engine, app.id, Reject("spam"), MOD_B)
        second = decide(db_engine, app.id, Approve(), MOD_A)

        assert first.kind is OutcomeKind.APPLIED
        assert second.kind is OutcomeKind.TERMINAL

    def test_pending_application_can_be_claimed(self, db_engine):
        app = start_application(db_engine, 100, 99999).application
        result = claim(db_engine, app.id, MOD_A)
        assert result.kind is ClaimKind.CLAIMED
        assert result.status == "pending"
