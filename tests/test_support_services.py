"""
tests/test_support_services.py — Config, Welcome, Cards & History
==================================================================
"""

from __future__ import annotations

import textwrap

import discord
import pytest

from warden.config import load_config
from warden.engine.decisions import Approve
from warden.services.application_service import load_application
from warden.services.audit_service import actions_for, record_action, recent_actions
from warden.services.card_service import get_card_location, save_card_location
from warden.services.claim_service import claim, get_claim
from warden.services.decision_service import decide
from warden.services.embeds import build_review_card_embed
from warden.services.guild_config_service import get_guild_config, upsert_guild_config
from warden.services.modmail_service import close_open_tickets, find_open_tickets, open_ticket
from warden.services.welcome_service import WelcomeContext, render_welcome

CTX = WelcomeContext(user_id=42, tag="newbie", display_name="Newbie", guild_name="Test Guild")


class TestLoadConfig:
    def test_reads_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(textwrap.dedent("""
            community_name: Test Community
            guild_id: 100
            staff_role_id: 200
            effect_timeout_seconds: 10
            claim_ttl_minutes: 0
        """))

        cfg = load_config(path)

        assert cfg.community_name == "Test Community"
        assert cfg.guild_id == 100
        assert cfg.staff_role_id == 200
        assert cfg.effect_timeout_seconds == 10.0
        assert cfg.claim_ttl_minutes is None
        assert cfg.history_limit == 4
        assert cfg.bot_prefix == "!"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_missing_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("community_name: X\n")
        with pytest.raises(KeyError):
            load_config(path)


class TestWelcome:
    def test_default_template(self):
        assert render_welcome(None, CTX) == "Welcome <@42> to Test Guild! \U0001f44b"

    def test_all_tokens(self):
        text = render_welcome(
            "{applicant.mention} {applicant.tag} {applicant.display} {guild.name}", CTX
        )
        assert text == "<@42> newbie Newbie Test Guild"

    def test_unknown_token_is_left_alone(self):
        assert render_welcome("Hi {applicant.age}", CTX) == "Hi {applicant.age}"


class TestGuildConfig:
    def test_defaults_when_missing(self, db_engine):
        cfg = get_guild_config(db_engine, 100)
        assert cfg.accepted_role_id is None
        assert cfg.reapply_cooldown_hours == 24

    def test_upsert(self, db_engine):
        upsert_guild_config(db_engine, 100, accepted_role_id=5, general_channel_id=6)
        upsert_guild_config(db_engine, 100, reapply_cooldown_hours=48)

        cfg = get_guild_config(db_engine, 100)
        assert cfg.accepted_role_id == 5
        assert cfg.general_channel_id == 6
        assert cfg.reapply_cooldown_hours == 48

    def test_unknown_field(self, db_engine):
        with pytest.raises(ValueError):
            upsert_guild_config(db_engine, 100, bogus=1)


class TestModmail:
    def test_close_open_tickets(self, db_engine):
        open_ticket(db_engine, 100, 42, thread_id=1)
        open_ticket(db_engine, 100, 43, thread_id=2)

        closed = close_open_tickets(db_engine, 100, 42, reason="approved")

        assert [t.thread_id for t in closed] == [1]
        assert find_open_tickets(db_engine, 100, 42) == []
        assert len(find_open_tickets(db_engine, 100, 43)) == 1

    def test_open_ticket_audits_application(self, db_engine, submitted_app):
        app = submitted_app(user_id=42)
        ticket_id = open_ticket(
            db_engine, 100, 42, thread_id=9, app_code=app.short_code, app_id=app.id
        )

        opened = actions_for(db_engine, app.id, action="modmail_open")
        assert len(opened) == 1
        assert opened[0].actor_id == 42
        assert opened[0].meta == {"ticket_id": ticket_id, "thread_id": 9}

    def test_open_ticket_without_application_writes_no_action(self, db_engine, submitted_app):
        app = submitted_app(user_id=42)
        open_ticket(db_engine, 100, 43, thread_id=10)
        assert actions_for(db_engine, app.id, action="modmail_open") == []


class TestHistoryAndCards:
    def test_recent_actions_newest_first(self, db_engine, submitted_app):
        app = submitted_app()
        for i in range(6):
            record_action(db_engine, app_id=app.id, actor_id=i, action="claim")

        recent = recent_actions(db_engine, app.id)

        assert [a.actor_id for a in recent] == [5, 4, 3, 2]
        assert len(recent_actions(db_engine, app.id, limit=10)) == 6

    def test_card_location(self, db_engine, submitted_app):
        app = submitted_app()
        assert get_card_location(db_engine, app.id) is None
        save_card_location(db_engine, app.id, 10, 20)
        save_card_location(db_engine, app.id, 10, 21)
        assert get_card_location(db_engine, app.id) == (10, 21)

    def test_review_card_embed(self, db_engine, submitted_app):
        app = submitted_app(user_id=42)
        claim(db_engine, app.id, 7)
        embed = build_review_card_embed(
            app, get_claim(db_engine, app.id), recent_actions(db_engine, app.id)
        )

        assert isinstance(embed, discord.Embed)
        assert app.short_code in embed.title
        fields = {f.name: f.value for f in embed.fields}
        assert fields["Status"] == "Submitted"
        assert fields["Claimed by"] == "<@7>"
        assert "`claim`" in fields["Recent activity"]

    def test_embed_for_decided_application(self, db_engine, submitted_app):
        app = submitted_app()
        decide(db_engine, app.id, Approve("ok"), 9)
        embed = build_review_card_embed(load_application(db_engine, app.id))
        fields = {f.name: f.value for f in embed.fields}
        assert fields["Decided by"] == "<@9>"
        assert embed.color == discord.Color.green()
