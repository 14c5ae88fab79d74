"""Traction playbook assistant: a guided chat that builds a quarterly playbook."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional, Sequence

from ..contracts import Message
from ..errors import UnrecognizedInput
from ..integrations.mattermost import Notifier, WebhookEvent
from ..traction import Rock, ScorecardMetric, build_playbook
from .base import ConversationalFlow, Intent, IntentMatcher, Transition, assistant

logger = logging.getLogger(__name__)

INTRO = "intro"
ROCKS = "rocks"
SCORECARD = "scorecard"
MEETINGS = "meetings"
REVIEW = "review"
COMPLETE = "complete"

DAYS = r"monday|tuesday|wednesday|thursday|friday|saturday|sunday"
SLOT_PATTERN = rf"\b({DAYS})\b\D*?(\d{{1,2}})(?!\d)(?::(\d{{2}})(?!\d))?\s*([ap]\.?m\.?)?"

MEETING_ACTIONS = (("Monday 9:00 AM", "Monday 9:00 AM"), ("Tuesday 9:00 AM", "Tuesday 9:00 AM"))
ROCK_ACTIONS = (("Use existing rocks", "use_existing"), ("Start fresh", "fresh"))
METRIC_ACTIONS = (("Include all metrics", "all_metrics"), ("Skip metrics", "no_metrics"))
GENERATE_ACTIONS = (("Generate Playbook", "generate"),)
EXPORT_ACTIONS = (("Copy JSON", "copy"), ("Download", "download"))


def normalize_slot(match) -> str:
    """Format a matched meeting slot as ``Monday 9:00 AM``.

    Hours run 1-12 with a meridiem and 0-23 without one.
    """
    day, hour, minute, meridiem = match.groups()
    hour, minute = int(hour), int(minute or 0)
    if minute > 59 or hour > 23 or (meridiem and not 1 <= hour <= 12):
        raise UnrecognizedInput(MEETINGS, match.string)
    if meridiem:
        suffix = "AM" if meridiem.lower().startswith("a") else "PM"
    else:
        suffix = "AM" if hour < 12 else "PM"
        hour = hour % 12 or 12
    return f"{day.capitalize()} {hour}:{minute:02d} {suffix}"


class PlaybookFlow(ConversationalFlow):
    """Collect quarter, rocks, metrics and meeting slot, then build the playbook."""

    phases = (INTRO, ROCKS, SCORECARD, MEETINGS, REVIEW, COMPLETE)
    matcher = IntentMatcher(
        {
            INTRO: [("quarter", r"\bq([1-4])\W*(20\d{2})\b")],
            ROCKS: [("use_existing", r"use_existing|\b(existing|yes|use)\b"), ("fresh", r"\b(fresh|no|new)\b")],
            SCORECARD: [("all_metrics", r"all_metrics|\b(all|yes|include)\b"), ("no_metrics", r"no_metrics|\b(skip|none|no)\b")],
            MEETINGS: [("slot", SLOT_PATTERN)],
            REVIEW: [("generate", r"\b(generate|yes|confirm|go ahead)\b")],
            COMPLETE: [("copy", r"\b(copy|json)\b"), ("download", r"\bdownload\b")],
        }
    )

    def __init__(
        self,
        rocks: Sequence[Rock] = (),
        metrics: Sequence[ScorecardMetric] = (),
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.rocks = list(rocks)
        self.metrics = list(metrics)
        self.notifier = notifier

    def intro_message(self) -> Message:
        return assistant(
            "Hi! I'm your Traction Assistant. I'll help you create a customized Mattermost "
            "Playbook to execute your quarterly rocks and track your EOS metrics.\n\n"
            "**What quarter are we planning for?**",
            actions=(("Q1 2025", "Q1 2025"), ("Q2 2025", "Q2 2025")),
        )

    def reprompt(self, phase: str, user_input: str) -> Message:
        if phase == INTRO:
            return assistant("Please name a quarter such as **Q1 2025**.", (("Q1 2025", "Q1 2025"), ("Q2 2025", "Q2 2025")))
        if phase == ROCKS:
            return assistant("Should the playbook use your existing rocks or start fresh?", ROCK_ACTIONS)
        if phase == SCORECARD:
            return assistant("Include all scorecard metrics in the playbook?", METRIC_ACTIONS)
        if phase == MEETINGS:
            return assistant("Please give a day and time, for example **Monday 9:00 AM**.", MEETING_ACTIONS)
        if phase == REVIEW:
            return assistant("Ready when you are. **Generate your Mattermost Playbook?**", GENERATE_ACTIONS)
        return assistant("Your playbook is ready. You can copy the JSON or download it.", EXPORT_ACTIONS)

    async def handle(self, phase: str, intent: Intent, context: Mapping[str, Any]) -> Transition:
        if phase == INTRO:
            quarter = f"Q{intent.match.group(1)} {intent.match.group(2)}"
            return Transition(
                next_phase=ROCKS,
                updates={"quarter": quarter},
                message=assistant(
                    f"Great! Planning for **{quarter}**.\n\nI see you have **{len(self.rocks)} rocks** "
                    "defined. Would you like to use these existing rocks for the playbook?",
                    ROCK_ACTIONS,
                ),
            )

        if phase == ROCKS:
            use_rocks = intent.name == "use_existing"
            opening = f"Perfect! Using your {len(self.rocks)} rocks." if use_rocks else "Okay, starting without rocks."
            return Transition(
                next_phase=SCORECARD,
                updates={"use_rocks": use_rocks},
                message=assistant(
                    f"{opening}\n\nYou have **{len(self.metrics)} scorecard metrics**. Include all in the playbook?",
                    METRIC_ACTIONS,
                ),
            )

        if phase == SCORECARD:
            include = intent.name == "all_metrics"
            opening = "Excellent! Including all metrics." if include else "Okay, leaving metrics out."
            return Transition(
                next_phase=MEETINGS,
                updates={"include_metrics": include},
                message=assistant(f"{opening}\n\n**When do you hold Level 10 meetings?**", MEETING_ACTIONS),
            )

        if phase == MEETINGS:
            slot = normalize_slot(intent.match)
            rocks, metrics = self._selection(context)
            return Transition(
                next_phase=REVIEW,
                updates={"meeting_slot": slot},
                message=assistant(
                    f"**Playbook Ready!**\n\n- Quarter: {context.get('quarter')}\n- Rocks: {len(rocks)}\n"
                    f"- Metrics: {len(metrics)}\n- Level 10: {slot}\n\n**Generate your Mattermost Playbook?**",
                    GENERATE_ACTIONS,
                ),
            )

        if phase == REVIEW:
            rocks, metrics = self._selection(context)
            playbook = build_playbook(context["quarter"], context["meeting_slot"], rocks, metrics)
            await self._announce(playbook)
            return Transition(
                next_phase=COMPLETE,
                updates={"playbook": playbook.to_mattermost()},
                message=assistant(
                    f'**Playbook Generated!**\n\nYour "{playbook.title}" playbook is ready with:\n'
                    f"- {playbook.rock_update_tasks} Rock update tasks\n"
                    f"- {playbook.scorecard_reviews} Scorecard reviews\n"
                    f"- {playbook.meeting_checklists} Level 10 meeting checklists",
                    EXPORT_ACTIONS,
                    data={"playbook": playbook.to_mattermost()},
                ),
            )

        playbook = context.get("playbook") or {}
        if intent.name == "copy":
            return Transition(
                next_phase=COMPLETE,
                message=assistant(f"```json\n{json.dumps(playbook, indent=2)}\n```", data={"playbook": playbook}),
            )
        filename = f"{playbook.get('title', 'playbook').lower().replace(' ', '-')}.json"
        return Transition(
            next_phase=COMPLETE,
            message=assistant(f"Download **{filename}** below.", data={"playbook": playbook, "filename": filename}),
        )

    def _selection(self, context: Mapping[str, Any]):
        rocks = self.rocks if context.get("use_rocks", True) else []
        metrics = self.metrics if context.get("include_metrics", True) else []
        return rocks, metrics

    async def _announce(self, playbook) -> None:
        if self.notifier is None:
            return
        result = await self.notifier.send(
            WebhookEvent.PLAYBOOK_GENERATED,
            {"quarter": playbook.quarter, "meeting_slot": playbook.meeting_slot, "checklists": playbook.meeting_checklists},
        )
        if not result.success:
            logger.warning(f"Playbook notification not delivered: {result.error}")
