"""Tests for tether.proactive."""

import json
from datetime import timedelta

import pytest

from tether.proactive import (
    MAX_PROACTIVE_PER_DAY,
    ProactiveEvaluator,
    build_scoring_prompt,
    check_rate_limits,
    determine_action,
    parse_score_response,
    prune_sent_records,
)
from tether.threads import ThreadStore
from tether.types import (
    FollowUpAction,
    ProactiveState,
    SentRecord,
    Thread,
    ThreadFollowUpState,
    ThreadStatus,
)


def score_json(importance, novelty, timing, confidence, draft="Any news on this?"):
    return json.dumps(
        {
            "importance": importance,
            "novelty": novelty,
            "timing": timing,
            "confidence": confidence,
            "reasoning": "seems worth it",
            "draft_message": draft,
        }
    )


class FakeInvoker:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


def stale_thread(clock, thread_id="t1", hours=5, **kwargs):
    return Thread(
        id=thread_id,
        topic=kwargs.pop("topic", f"Topic {thread_id}"),
        status=kwargs.pop("status", ThreadStatus.ACTIVE),
        last_activity=clock() - timedelta(hours=hours),
        participants=kwargs.pop("participants", ["user", "agent"]),
        message_count=kwargs.pop("message_count", 4),
    )


def state_with_sends(*sent):
    return ProactiveState(sent_today=[SentRecord(tid, at) for tid, at in sent])


class TestRateLimits:
    def test_clear_state_allows(self, clock):
        assert check_rate_limits(ProactiveState(), "t1", clock()) is None

    def test_daily_limit(self, clock):
        now = clock()
        state = state_with_sends(
            ("a", now - timedelta(hours=10)),
            ("b", now - timedelta(hours=6)),
            ("c", now - timedelta(hours=3)),
        )
        assert check_rate_limits(state, "t1", now) == "daily limit reached (3/day)"

    def test_minimum_gap_reports_remaining_minutes(self, clock):
        now = clock()
        state = state_with_sends(("a", now - timedelta(minutes=90)))
        assert check_rate_limits(state, "t1", now) == "minimum gap not met (30min remaining)"

    def test_gap_satisfied_at_two_hours(self, clock):
        now = clock()
        state = state_with_sends(("a", now - timedelta(hours=2)))
        assert check_rate_limits(state, "t1", now) is None

    def test_thread_limit(self, clock):
        now = clock()
        state = state_with_sends(("t1", now - timedelta(hours=3)))
        state.follow_ups_by_thread["t1"] = ThreadFollowUpState(follow_up_count=1)
        assert check_rate_limits(state, "t1", now) == "thread follow-up limit reached (1 max)"
        assert check_rate_limits(state, "t2", now) is None

    def test_ignored_thread(self, clock):
        state = ProactiveState(follow_ups_by_thread={"t1": ThreadFollowUpState(ignored=True)})
        assert (
            check_rate_limits(state, "t1", clock())
            == "previous follow-up on this thread was ignored"
        )

    def test_records_expire_after_24_hours(self, clock):
        now = clock()
        state = state_with_sends(
            ("a", now - timedelta(hours=24)),
            ("b", now - timedelta(hours=25)),
            ("c", now - timedelta(hours=23)),
        )
        prune_sent_records(state, now)
        assert [r.thread_id for r in state.sent_today] == ["c"]


class TestScoring:
    @pytest.mark.parametrize(
        "weighted, action",
        [
            (7.0, FollowUpAction.SEND),
            (9.9, FollowUpAction.SEND),
            (6.99, FollowUpAction.NOTE),
            (4.0, FollowUpAction.NOTE),
            (3.99, FollowUpAction.SILENCE),
            (0.0, FollowUpAction.SILENCE),
        ],
    )
    def test_determine_action(self, weighted, action):
        assert determine_action(weighted) == action

    def test_weighted_score(self):
        score, draft = parse_score_response(score_json(10, 5, 5, 0))
        # 10*0.4 + 5*0.25 + 5*0.2 + 0*0.15
        assert score.weighted == 6.25
        assert score.reasoning == "seems worth it"
        assert draft == "Any news on this?"

    def test_uniform_sevens_weigh_exactly_seven(self):
        score, _ = parse_score_response(score_json(7, 7, 7, 7))
        assert score.weighted == 7.0
        assert determine_action(score.weighted) == FollowUpAction.SEND

    def test_strips_code_fences(self):
        raw = "```json\n" + score_json(4, 4, 4, 4) + "\n```"
        score, _ = parse_score_response(raw)
        assert score.weighted == 4.0

    @pytest.mark.parametrize(
        "raw",
        [
            "not json at all",
            json.dumps({"importance": 5, "novelty": 5, "timing": 5}),
            score_json(11, 5, 5, 5),
            score_json(5, -1, 5, 5),
            '{"importance": NaN, "novelty": 5, "timing": 5, "confidence": 5}',
            '{"importance": 5, "novelty": Infinity, "timing": 5, "confidence": 5}',
            json.dumps(["importance", 5]),
        ],
    )
    def test_rejects_unusable_responses(self, raw):
        assert parse_score_response(raw) is None

    def test_missing_draft_is_empty(self):
        raw = json.dumps({"importance": 1, "novelty": 1, "timing": 1, "confidence": 1})
        score, draft = parse_score_response(raw)
        assert draft == ""
        assert score.reasoning == ""

    def test_prompt_describes_thread(self, clock):
        thread = stale_thread(clock, topic="Quarterly report", hours=6, participants=["ana"])
        prompt = build_scoring_prompt(thread, clock(), agent_name="Iris", user_name="Ana")

        assert "from Iris (an autonomous agent) to Ana" in prompt
        assert "- Topic: Quarterly report" in prompt
        assert "(6 hours ago)" in prompt
        assert "- Participants: ana" in prompt
        assert "{agent}" not in prompt


class TestEvaluateThread:
    def test_high_score_sends_with_draft(self, workspace, clock):
        invoker = FakeInvoker(score_json(9, 8, 7, 8))
        evaluator = ProactiveEvaluator(workspace, invoker, clock=clock)
        result = evaluator.evaluate_thread_for_follow_up(stale_thread(clock))

        assert result.action == FollowUpAction.SEND
        assert result.draft.message == "Any news on this?"
        assert result.draft.drafted_at == clock()
        assert result.draft.score == result.score
        assert result.rate_limit_reason is None
        assert len(invoker.prompts) == 1

    def test_mid_score_notes(self, workspace, clock):
        evaluator = ProactiveEvaluator(workspace, FakeInvoker(score_json(5, 5, 5, 5)), clock=clock)
        result = evaluator.evaluate_thread_for_follow_up(stale_thread(clock))
        assert result.action == FollowUpAction.NOTE
        assert result.draft is None

    def test_send_without_draft_has_no_draft(self, workspace, clock):
        invoker = FakeInvoker(score_json(9, 9, 9, 9, draft=""))
        evaluator = ProactiveEvaluator(workspace, invoker, clock=clock)
        result = evaluator.evaluate_thread_for_follow_up(stale_thread(clock))
        assert result.action == FollowUpAction.SEND
        assert result.draft is None

    @pytest.mark.parametrize(
        "invoker",
        [
            FakeInvoker(None),
            FakeInvoker("   "),
            FakeInvoker("I think you should follow up!"),
            FakeInvoker('{"importance": NaN, "novelty": 5, "timing": 5, "confidence": 5}'),
            FakeInvoker(error=RuntimeError("boom")),
        ],
    )
    def test_model_problems_mean_silence(self, workspace, clock, invoker):
        evaluator = ProactiveEvaluator(workspace, invoker, clock=clock)
        result = evaluator.evaluate_thread_for_follow_up(stale_thread(clock))
        assert result.action == FollowUpAction.SILENCE
        assert result.score is None
        assert result.rate_limit_reason is None

    def test_rate_limited_skips_model(self, workspace, clock):
        invoker = FakeInvoker(score_json(9, 9, 9, 9))
        evaluator = ProactiveEvaluator(workspace, invoker, clock=clock)
        evaluator.record_follow_up_ignored("t1")

        result = evaluator.evaluate_thread_for_follow_up(stale_thread(clock))
        assert result.action == FollowUpAction.SILENCE
        assert result.rate_limit_reason == "previous follow-up on this thread was ignored"
        assert invoker.prompts == []

    def test_shadow_mode_tags_results(self, workspace, clock):
        evaluator = ProactiveEvaluator(
            workspace, FakeInvoker(score_json(9, 9, 9, 9)), shadow=True, clock=clock
        )
        result = evaluator.evaluate_thread_for_follow_up(stale_thread(clock))
        assert result.action == FollowUpAction.SEND
        assert result.shadow is True
        assert evaluator.get_status()["sent_last_24h"] == 0


class TestEvaluateActiveThreads:
    def test_requires_thread_source(self, workspace, clock):
        evaluator = ProactiveEvaluator(workspace, FakeInvoker(), clock=clock)
        with pytest.raises(ValueError, match="thread source"):
            evaluator.evaluate_active_threads()

    def test_only_stale_active_threads(self, workspace, clock, write_threads, make_thread):
        write_threads(
            [
                make_thread("fresh", clock() - timedelta(hours=1)),
                make_thread("edge", clock() - timedelta(hours=4)),
                make_thread("old", clock() - timedelta(hours=30)),
                make_thread("done", clock() - timedelta(hours=30), status="resolved"),
            ]
        )
        invoker = FakeInvoker(score_json(2, 2, 2, 2))
        evaluator = ProactiveEvaluator(workspace, invoker, ThreadStore(workspace), clock=clock)

        results = evaluator.evaluate_active_threads()
        assert [r.thread_id for r in results] == ["edge", "old"]
        assert all(r.action == FollowUpAction.SILENCE for r in results)

    def test_custom_stale_after(self, workspace, clock, write_threads, make_thread):
        write_threads([make_thread("a", clock() - timedelta(hours=1))])
        evaluator = ProactiveEvaluator(
            workspace, FakeInvoker(score_json(2, 2, 2, 2)), ThreadStore(workspace), clock=clock
        )
        assert evaluator.evaluate_active_threads(stale_after_hours=4) == []
        assert len(evaluator.evaluate_active_threads(stale_after_hours=0.5)) == 1

    def test_batch_stops_at_first_rate_limit(self, workspace, clock, write_threads, make_thread):
        write_threads(
            [make_thread(f"t{i}", clock() - timedelta(hours=10 + i)) for i in range(3)]
        )
        invoker = FakeInvoker(score_json(9, 9, 9, 9))
        evaluator = ProactiveEvaluator(workspace, invoker, ThreadStore(workspace), clock=clock)
        for i in range(MAX_PROACTIVE_PER_DAY):
            evaluator.record_follow_up_sent(f"x{i}", clock() - timedelta(hours=3 + 3 * i))

        results = evaluator.evaluate_active_threads()
        assert len(results) == 1
        assert results[0].rate_limit_reason == "daily limit reached (3/day)"
        assert invoker.prompts == []


class TestBookkeeping:
    def test_sent_then_gap_then_thread_limit(self, workspace, clock):
        evaluator = ProactiveEvaluator(workspace, FakeInvoker(score_json(9, 9, 9, 9)), clock=clock)
        evaluator.record_follow_up_sent("t1")

        clock.advance(hours=1)
        result = evaluator.evaluate_thread_for_follow_up(stale_thread(clock, "t2"))
        assert result.rate_limit_reason == "minimum gap not met (60min remaining)"

        clock.advance(hours=1)
        result = evaluator.evaluate_thread_for_follow_up(stale_thread(clock, "t1"))
        assert result.rate_limit_reason == "thread follow-up limit reached (1 max)"

        result = evaluator.evaluate_thread_for_follow_up(stale_thread(clock, "t2"))
        assert result.action == FollowUpAction.SEND

    def test_state_document(self, workspace, clock):
        evaluator = ProactiveEvaluator(workspace, FakeInvoker(), clock=clock)
        evaluator.record_follow_up_sent("t1")
        evaluator.record_follow_up_ignored("t1")

        data = json.loads((workspace / "memory" / "proactive-state.json").read_text())
        assert data["sentToday"] == [{"threadId": "t1", "sentAt": clock().isoformat()}]
        assert data["followUpsByThread"]["t1"] == {
            "followUpCount": 1,
            "lastFollowUpAt": clock().isoformat(),
            "ignored": True,
        }

    def test_status(self, workspace, clock):
        evaluator = ProactiveEvaluator(workspace, FakeInvoker(), clock=clock)
        assert evaluator.get_status() == {
            "sent_last_24h": 0,
            "daily_limit": 3,
            "last_sent_at": None,
            "ignored_threads": [],
            "shadow": False,
        }

        evaluator.record_follow_up_sent("t1")
        evaluator.record_follow_up_ignored("t9")
        status = evaluator.get_status()
        assert status["sent_last_24h"] == 1
        assert status["last_sent_at"] == clock().isoformat()
        assert status["ignored_threads"] == ["t9"]

        clock.advance(hours=25)
        assert evaluator.get_status()["sent_last_24h"] == 0

    def test_corrupt_state_starts_empty(self, workspace, clock, caplog):
        path = workspace / "memory" / "proactive-state.json"
        path.parent.mkdir(parents=True)
        path.write_text("{nope", encoding="utf-8")

        evaluator = ProactiveEvaluator(workspace, FakeInvoker(), clock=clock)
        assert evaluator.load_state().sent_today == []
        assert "malformed" in caplog.text
