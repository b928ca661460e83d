"""Tests for check ordering and the escalation pipeline."""

import pytest

from lumibot.automod import AutoModState, Violation, WarningAction
from lumibot.config import AutoModSettings

from .helpers import FakeClock, forbidden, make_event


class RecordingActions:
    def __init__(self, *, fail_delete=False, fail_punish=False, fail_notify=False, fail_ack=False):
        self.calls = []
        self.fail_delete = fail_delete
        self.fail_punish = fail_punish
        self.fail_notify = fail_notify
        self.fail_ack = fail_ack

    async def delete_message(self):
        self.calls.append("delete")
        if self.fail_delete:
            raise forbidden()

    async def notify_member(self, action, count, reason):
        self.calls.append(("notify", action, count))
        if self.fail_notify:
            raise forbidden()

    async def apply_punishment(self, action, count, reason):
        self.calls.append(("punish", action, count))
        if self.fail_punish:
            raise forbidden()

    async def log_punishment(self, action, count, reason):
        self.calls.append(("log", action, count))

    async def report_failure(self, action, count, reason, error):
        self.calls.append(("failure", action, count))

    async def send_acknowledgement(self, reason, delete_after):
        self.calls.append(("ack", reason, delete_after))
        if self.fail_ack:
            raise forbidden()


@pytest.fixture
def state():
    return AutoModState(AutoModSettings(banned_words=("badword",)), clock=FakeClock())


def test_banned_word_wins_over_link(state):
    event = make_event("badword https://evil.example.com", mentions=10)
    assert state.pipeline.detect(event) is Violation.BANNED_CONTENT


def test_link_wins_over_mentions(state):
    event = make_event("see https://evil.example.com", mentions=10)
    assert state.pipeline.detect(event) is Violation.DISALLOWED_LINK


def test_mention_limit_is_exclusive(state):
    assert state.pipeline.detect(make_event(mentions=5)) is None
    assert state.pipeline.detect(make_event(mentions=6)) is Violation.MENTION_SPAM


def test_spam_detected_on_sixth_message(state):
    verdicts = [state.pipeline.detect(make_event(f"message number {i}", timestamp=100.0 + i * 0.5)) for i in range(6)]
    assert verdicts[:5] == [None] * 5
    assert verdicts[5] is Violation.SPAM


def test_disabled_checks_are_skipped():
    state = AutoModState(AutoModSettings(banned_words=("badword",), disabled_checks=frozenset({"banned_words"})))
    assert state.pipeline.detect(make_event("badword")) is None


@pytest.mark.asyncio
async def test_clean_message_does_nothing(state):
    actions = RecordingActions()
    assert await state.pipeline.on_message(make_event("hello everyone"), actions) is None
    assert actions.calls == []


@pytest.mark.asyncio
async def test_first_violation_warns(state):
    actions = RecordingActions()
    outcome = await state.pipeline.on_message(make_event("badword"), actions)

    assert outcome.violation is Violation.BANNED_CONTENT
    assert outcome.warning_count == 1
    assert outcome.action is WarningAction.WARN
    assert outcome.deleted and outcome.punished
    assert actions.calls == [
        "delete",
        ("punish", WarningAction.WARN, 1),
        ("notify", WarningAction.WARN, 1),
        ("log", WarningAction.WARN, 1),
        ("ack", "Using prohibited language", 5.0),
    ]
    [entry] = state.ledger.get_live(42, make_event().timestamp)
    assert entry.moderator == "Auto-Mod"


@pytest.mark.asyncio
async def test_repeat_violations_escalate(state):
    expected = [
        WarningAction.WARN,
        WarningAction.MUTE_1H,
        WarningAction.MUTE_24H,
        WarningAction.BAN_7D,
        WarningAction.BAN_PERMANENT,
        WarningAction.BAN_PERMANENT,
    ]
    for i, action in enumerate(expected):
        outcome = await state.pipeline.on_message(make_event("badword", timestamp=1000.0 + i * 60), RecordingActions())
        assert outcome.action is action
        assert outcome.warning_count == i + 1


@pytest.mark.asyncio
async def test_ban_notifies_before_punishing(state):
    for i in range(3):
        state.ledger.add(42, "earlier", "Auto-Mod", 1000.0 + i)
    actions = RecordingActions()
    outcome = await state.pipeline.on_message(make_event("badword", timestamp=1010.0), actions)

    assert outcome.action is WarningAction.BAN_7D
    assert actions.calls[1:4] == [
        ("notify", WarningAction.BAN_7D, 4),
        ("punish", WarningAction.BAN_7D, 4),
        ("log", WarningAction.BAN_7D, 4),
    ]


@pytest.mark.asyncio
async def test_expired_warnings_reset_escalation(state):
    await state.pipeline.on_message(make_event("badword", timestamp=0.0), RecordingActions())
    later = 31 * 86400.0
    outcome = await state.pipeline.on_message(make_event("badword", timestamp=later), RecordingActions())
    assert outcome.warning_count == 1
    assert outcome.action is WarningAction.WARN


@pytest.mark.asyncio
async def test_punishment_failure_is_reported(state):
    actions = RecordingActions(fail_punish=True)
    outcome = await state.pipeline.on_message(make_event("badword"), actions)

    assert outcome.punished is False
    assert ("failure", WarningAction.WARN, 1) in actions.calls
    assert not any(call[0] == "log" for call in actions.calls if isinstance(call, tuple))
    assert actions.calls[-1][0] == "ack"


@pytest.mark.asyncio
async def test_delete_failure_still_warns(state):
    actions = RecordingActions(fail_delete=True)
    outcome = await state.pipeline.on_message(make_event("badword"), actions)
    assert outcome.deleted is False
    assert outcome.punished is True
    assert state.ledger.tracked_users() == 1


@pytest.mark.asyncio
async def test_dm_and_acknowledgement_failures_are_swallowed(state):
    actions = RecordingActions(fail_notify=True, fail_ack=True)
    outcome = await state.pipeline.on_message(make_event("badword"), actions)
    assert outcome.punished is True


@pytest.mark.asyncio
async def test_record_outcome_updates_stats(state):
    outcome = await state.pipeline.on_message(make_event("badword"), RecordingActions())
    state.record_outcome(outcome)
    stats = state.stats()
    assert stats["violations"] == {"banned_words": 1}
    assert stats["actions"] == {"warn": 1}
    assert stats["tracked_users"]["warnings"] == 1
    assert stats["lockdown_active"] is False


@pytest.mark.asyncio
async def test_banned_word_with_bad_link_acts_once(state):
    actions = RecordingActions()
    event = make_event("badword https://evil-lumist.ai/free")
    outcome = await state.pipeline.on_message(event, actions)

    assert outcome.violation is Violation.BANNED_CONTENT
    assert actions.calls.count("delete") == 1
    assert len(state.ledger.get_live(event.author_id, event.timestamp)) == 1
    assert actions.calls[-1] == ("ack", "Using prohibited language", 5.0)
