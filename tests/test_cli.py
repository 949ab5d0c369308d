"""Tests for the tether CLI (argument parsing and command output)."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from tether import Governor
from tether.cli.__main__ import build_parser, main
from tether.types import ActionCategory


@pytest.fixture
def run(workspace, capsys):
    """Run the CLI against the test workspace and return stdout."""

    def _run(*argv):
        main(["-w", str(workspace), *argv])
        return capsys.readouterr().out

    return _run


def _score(value, draft="Checking in on this one."):
    return json.dumps(
        {
            "importance": value,
            "novelty": value,
            "timing": value,
            "confidence": value,
            "reasoning": "worth a nudge",
            "draft_message": draft,
        }
    )


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args([])
        assert exc_info.value.code == 2

    def test_signal_type_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["trust", "signal", "sideways", "0.1", "-s", "x"])

    def test_global_options(self):
        args = build_parser().parse_args(["-w", "/tmp/ws", "-a", "iris", "attention"])
        assert args.workspace == "/tmp/ws"
        assert args.agent == "iris"


class TestTrustCommands:
    def test_show(self, run):
        out = run("trust", "show")
        assert "Trust: [█████░░░░░] 0.50" in out
        assert "## Autonomy Trust State" in out
        assert "Allowed tiers: autonomous, propose" in out

    def test_default_subcommand_is_show(self, run):
        assert "Trust:" in run("trust")

    def test_show_json(self, run):
        data = json.loads(run("trust", "show", "--json"))
        assert data["score"] == 0.5
        assert data["frozen"] is False

    def test_signal_persists(self, run, workspace):
        out = run("trust", "signal", "positive", "0.1", "--source", "engaged")
        assert out.strip() == "Trust 0.50 -> 0.60 (positive 0.1 from engaged)"
        assert Governor(workspace).trust.get_score() == pytest.approx(0.6)

    def test_negative_value_rejected(self, run):
        with pytest.raises(SystemExit) as exc_info:
            run("trust", "signal", "negative", "-0.1", "--source", "x")
        assert exc_info.value.code == 1

    def test_fail_freezes(self, run):
        out = run("trust", "fail", "deleted the wrong file")
        assert "Critical failure recorded: deleted the wrong file" in out
        assert "Trust set to 0.10; scope frozen until" in out

        out = run("trust", "signal", "positive", "0.2", "-s", "apology accepted")
        assert "Scope remains frozen to autonomous actions." in out


class TestProposalCommands:
    def test_empty(self, run):
        assert "Proposal queue is empty." in run("proposals")
        assert "No pending proposals." in run("proposals", "list", "--pending")

    def test_list_and_approve(self, run, workspace):
        proposal_id = Governor(workspace).submit_action(
            ActionCategory.OUTBOUND_MESSAGE,
            "Tell Sam the build is green",
            reasoning="Sam asked to be told",
            target="sam",
        ).proposal_id

        out = run("proposals", "list")
        assert f"[pending] {proposal_id}" in out
        assert "outbound-message -> sam" in out
        assert "Reason: Sam asked to be told" in out

        assert run("proposals", "approve", proposal_id).strip() == (
            f"Proposal {proposal_id} approved."
        )
        data = json.loads(run("proposals", "list", "--json"))
        assert data[0]["status"] == "approved"

    def test_double_resolution_exits(self, run, workspace):
        proposal_id = Governor(workspace).submit_action(
            ActionCategory.WORKSPACE_WRITE, "edit notes", target="notes.md"
        ).proposal_id
        run("proposals", "reject", proposal_id)

        with pytest.raises(SystemExit) as exc_info:
            run("proposals", "approve", proposal_id)
        assert exc_info.value.code == 1

    def test_unknown_id_exits(self, run):
        with pytest.raises(SystemExit) as exc_info:
            run("proposals", "approve", "does-not-exist")
        assert exc_info.value.code == 1


class TestActionCommands:
    def test_empty_log(self, run):
        assert "No actions logged." in run("actions")

    def test_log(self, run, workspace):
        governor = Governor(workspace)
        governor.submit_action(ActionCategory.REFLECTION, "weekly review")
        governor.submit_action(ActionCategory.FILE_DELETE, "remove old drafts")

        out = run("actions", "log")
        assert "Recent actions (2 of 2):" in out
        assert "blocked (restricted)" in out
        assert "weekly review" in out

        data = json.loads(run("actions", "log", "--limit", "1", "--json"))
        assert [e["category"] for e in data] == ["file-delete"]

    def test_classify(self, run):
        assert run("actions", "classify", "outbound-message").strip() == (
            "outbound-message: propose"
        )
        assert run("actions", "classify", "teleport").strip() == (
            "teleport: unknown category -> restricted"
        )

    def test_classify_tightened_when_frozen(self, run):
        run("trust", "fail", "oops")
        assert run("actions", "classify", "outbound-message").strip() == (
            "outbound-message: restricted (default propose, tightened at trust 0.10)"
        )


class TestAttentionCommand:
    def test_text(self, run, workspace):
        (workspace / "concerns.md").write_text("- renew passport\n", encoding="utf-8")
        out = run("attention")
        assert "Urgency:" in out
        assert "Active concerns: 1 of 1" in out
        assert "  - renew passport" in out

    def test_json(self, run):
        data = json.loads(run("attention", "--json"))
        assert data["threshold"] == 0.6
        assert data["would_think"] is False
        assert data["pending_actions_count"] == 0
        assert 0.0 <= data["urgency_score"] <= 1.0


class TestProactiveCommands:
    def test_scan_without_model_exits(self, run):
        with patch("tether.cli.commands.proactive.auto_configure_model", return_value=None):
            with pytest.raises(SystemExit) as exc_info:
                run("proactive", "scan")
        assert exc_info.value.code == 1

    def test_scan(self, run, write_threads, make_thread):
        now = datetime.now(timezone.utc)
        write_threads(
            [
                make_thread("t1", now - timedelta(hours=10), topic="Lease renewal"),
                make_thread("t2", now - timedelta(minutes=10), topic="Fresh chat"),
            ]
        )
        model = MagicMock()
        model.model_id = "fake"
        model.complete.return_value = _score(8)

        with patch("tether.cli.commands.proactive.auto_configure_model", return_value=model):
            out = run("proactive", "scan", "--shadow")

        assert "send" in out
        assert "Lease renewal [shadow]" in out
        assert "draft: Checking in on this one." in out
        assert "Fresh chat" not in out

    def test_scan_nothing_stale(self, run):
        model = MagicMock()
        with patch("tether.cli.commands.proactive.auto_configure_model", return_value=model):
            out = run("proactive", "scan", "--stale-hours", "6")
        assert out.strip() == "No threads idle for 6h or more."

    def test_sent_ignored_status(self, run):
        assert run("proactive", "sent", "t1").strip() == "Recorded follow-up sent on t1."
        assert run("proactive", "ignored", "t2").strip() == "Marked follow-up on t2 as ignored."

        status = json.loads(run("proactive", "status", "--json"))
        assert status["sent_last_24h"] == 1
        assert status["ignored_threads"] == ["t2"]

        out = run("proactive")
        assert "Sent in last 24h: 1/3" in out
        assert "Ignored threads: t2" in out


class TestInitErrors:
    def test_bad_config_exits(self, workspace, monkeypatch):
        monkeypatch.setenv("TETHER_URGENCY_THRESHOLD", "3")
        with pytest.raises(SystemExit) as exc_info:
            main(["-w", str(workspace), "attention"])
        assert exc_info.value.code == 1
