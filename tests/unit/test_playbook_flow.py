import json

import pytest

from portalflow.conversation import ConversationSession, PlaybookFlow
from portalflow.conversation.playbook import COMPLETE, MEETINGS, REVIEW, ROCKS, SCORECARD
from portalflow.integrations.mattermost import WebhookEvent
from portalflow.traction import Rock, RockStatus, ScorecardMetric


@pytest.fixture
def rocks():
    return [
        Rock(id="r1", description="Launch supplier portal", owner="Sam", status=RockStatus.ON_TRACK),
        Rock(id="r2", description="Close 5 OEM deals", owner="Kim", status=RockStatus.AT_RISK),
    ]


@pytest.fixture
def metrics():
    return [ScorecardMetric(id="m1", name="Weekly leads", goal=20, actual=24, owner="Kim")]


@pytest.fixture
def session(rocks, metrics, notifier):
    return ConversationSession(PlaybookFlow(rocks, metrics, notifier=notifier))


@pytest.mark.asyncio
async def test_full_playbook_conversation(session, notifier):
    reply = await session.send("Q1 2025")
    assert session.phase == ROCKS
    assert "Planning for **Q1 2025**" in reply.content
    assert "**2 rocks**" in reply.content

    await session.choose("use_existing")
    assert session.phase == SCORECARD
    await session.choose("all_metrics")
    assert session.phase == MEETINGS

    reply = await session.send("Monday 9:00 AM")
    assert session.phase == REVIEW
    assert "- Level 10: Monday 9:00 AM" in reply.content

    reply = await session.choose("generate")
    assert session.is_complete
    assert session.phase == COMPLETE
    assert "- 26 Rock update tasks" in reply.content
    assert "- 13 Scorecard reviews" in reply.content
    assert "- 13 Level 10 meeting checklists" in reply.content

    playbook = reply.data["playbook"]
    assert playbook["title"] == "Traction Q1 2025 Execution"
    assert len(playbook["checklists"]) == 13
    assert session.context["playbook"] == playbook

    assert notifier.sent == [
        (WebhookEvent.PLAYBOOK_GENERATED, {"quarter": "Q1 2025", "meeting_slot": "Monday 9:00 AM", "checklists": 13})
    ]


@pytest.mark.asyncio
async def test_skipping_rocks_and_metrics(session):
    await session.send("planning for q3-2026 please")
    assert session.context["quarter"] == "Q3 2026"
    await session.send("start fresh")
    await session.send("skip")
    await session.send("tuesday at 14:30")
    assert session.context["meeting_slot"] == "Tuesday 2:30 PM"
    reply = await session.send("yes")
    assert "- 0 Rock update tasks" in reply.content
    assert "- 0 Scorecard reviews" in reply.content


@pytest.mark.asyncio
async def test_unrecognized_quarter_reprompts(session):
    reply = await session.send("next quarter")
    assert session.phase == "intro"
    assert "Q1 2025" in reply.content
    assert len(session.messages) == 3


@pytest.mark.asyncio
async def test_export_after_completion(session):
    for text in ("Q2 2025", "use_existing", "all_metrics", "Friday 8am", "generate"):
        await session.send(text)

    copied = await session.choose("copy")
    assert session.phase == COMPLETE
    assert json.loads(copied.content.strip("`").removeprefix("json\n"))["title"] == "Traction Q2 2025 Execution"

    download = await session.choose("download")
    assert download.data["filename"] == "traction-q2-2025-execution.json"


@pytest.mark.asyncio
async def test_generation_survives_failed_notification(rocks, metrics, notifier):
    notifier.success = False
    session = ConversationSession(PlaybookFlow(rocks, metrics, notifier=notifier))
    for text in ("Q4 2025", "yes", "yes", "Wednesday 10 am", "confirm"):
        await session.send(text)
    assert session.is_complete


async def _reach_meetings(session):
    await session.send("Q1 2025")
    await session.send("fresh")
    await session.send("skip")
    assert session.phase == MEETINGS


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["Monday 25:00", "Monday 9:75", "Monday 13pm", "Monday 0 am", "Monday 125"])
async def test_out_of_range_meeting_time_reprompts(session, text):
    await _reach_meetings(session)
    before = len(session.messages)

    reply = await session.send(text)

    assert session.phase == MEETINGS
    assert "meeting_slot" not in session.context
    assert "Monday 9:00 AM" in reply.content
    assert len(session.messages) == before + 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "text, slot",
    [
        ("Monday 0", "Monday 12:00 AM"),
        ("friday 12pm", "Friday 12:00 PM"),
        ("Wednesday 23:59", "Wednesday 11:59 PM"),
        ("thursday 9am", "Thursday 9:00 AM"),
    ],
)
async def test_meeting_time_is_normalized(session, text, slot):
    await _reach_meetings(session)
    await session.send(text)
    assert session.phase == REVIEW
    assert session.context["meeting_slot"] == slot


@pytest.mark.asyncio
async def test_raising_notifier_leaves_review_without_partial_turn(rocks, metrics):
    class BrokenNotifier:
        async def send(self, event, data):
            raise RuntimeError("webhook down")

    session = ConversationSession(PlaybookFlow(rocks, metrics, notifier=BrokenNotifier()))
    await _reach_meetings(session)
    await session.send("Monday 9:00 AM")
    before = [m.role for m in session.messages]

    with pytest.raises(RuntimeError):
        await session.send("generate")

    assert session.phase == REVIEW
    assert [m.role for m in session.messages] == before
