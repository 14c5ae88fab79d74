"""Traction (EOS) rocks, scorecard metrics and Mattermost playbook generation."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml
from pydantic import BaseModel, Field

from .constants import QUARTER_WEEKS
from .errors import ConfigError


class RockStatus(str, Enum):
    ON_TRACK = "on-track"
    AT_RISK = "at-risk"
    OFF_TRACK = "off-track"
    COMPLETE = "complete"


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class Rock(BaseModel):
    """A quarterly priority."""

    id: str
    description: str
    owner: str = ""
    due_date: Optional[str] = None
    status: RockStatus = RockStatus.ON_TRACK
    progress: int = 0
    quarter: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return self.status in (RockStatus.ON_TRACK, RockStatus.COMPLETE)


class ScorecardMetric(BaseModel):
    id: str
    name: str
    goal: float
    actual: float = 0
    owner: str = ""
    trend: Trend = Trend.FLAT
    unit: Optional[str] = None

    @property
    def on_target(self) -> bool:
        return self.actual >= self.goal


class TractionData(BaseModel):
    rocks: List[Rock] = Field(default_factory=list)
    metrics: List[ScorecardMetric] = Field(default_factory=list)


def load_traction(path: str | Path) -> TractionData:
    """Read rocks and metrics from a YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return TractionData.model_validate(data)
    except (OSError, yaml.YAMLError, ValueError) as e:
        raise ConfigError(f"Invalid traction data in {path}: {e}") from e


def calculate_overall_health(
    rocks: Sequence[Rock], metrics: Sequence[ScorecardMetric]
) -> float:
    """Score out of 10 averaging healthy rocks and on-target metrics.

    An empty list scores 0 for its half.
    """
    rock_score = sum(r.healthy for r in rocks) / len(rocks) * 10 if rocks else 0.0
    metric_score = sum(m.on_target for m in metrics) / len(metrics) * 10 if metrics else 0.0
    return round((rock_score + metric_score) / 2, 1)


class ChecklistItem(BaseModel):
    title: str
    description: str = ""


class Checklist(BaseModel):
    title: str
    items: List[ChecklistItem] = Field(default_factory=list)


class Playbook(BaseModel):
    """A quarterly execution playbook in Mattermost Playbooks layout."""

    title: str
    description: str = ""
    quarter: str
    meeting_slot: str
    rock_count: int = 0
    metric_count: int = 0
    checklists: List[Checklist] = Field(default_factory=list)

    @property
    def rock_update_tasks(self) -> int:
        return self.rock_count * QUARTER_WEEKS

    @property
    def scorecard_reviews(self) -> int:
        return self.metric_count * QUARTER_WEEKS

    @property
    def meeting_checklists(self) -> int:
        return len(self.checklists)

    def to_mattermost(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "checklists": [
                {
                    "title": checklist.title,
                    "items": [item.model_dump() for item in checklist.items],
                }
                for checklist in self.checklists
            ],
        }


def build_playbook(
    quarter: str,
    meeting_slot: str,
    rocks: Sequence[Rock] = (),
    metrics: Sequence[ScorecardMetric] = (),
) -> Playbook:
    """Build one Level 10 checklist per week of the quarter."""
    checklists = []
    for week in range(1, QUARTER_WEEKS + 1):
        items = [ChecklistItem(title="Segue: share good news"), ChecklistItem(title="Review headlines")]
        items.extend(
            ChecklistItem(
                title=f"Scorecard review: {m.name}",
                description=f"Goal {m.goal:g}{m.unit or ''}, owner {m.owner or 'unassigned'}",
            )
            for m in metrics
        )
        items.extend(
            ChecklistItem(
                title=f"Rock update: {r.description}",
                description=f"Owner {r.owner or 'unassigned'}, due {r.due_date or 'end of quarter'}",
            )
            for r in rocks
        )
        items.extend(
            [
                ChecklistItem(title="To-do list review"),
                ChecklistItem(title="IDS: identify, discuss, solve issues"),
                ChecklistItem(title="Conclude: recap to-dos and rate the meeting"),
            ]
        )
        checklists.append(Checklist(title=f"Week {week}: Level 10 meeting ({meeting_slot})", items=items))

    return Playbook(
        title=f"Traction {quarter} Execution",
        description=f"Weekly Level 10 meetings on {meeting_slot} covering {len(rocks)} rocks and {len(metrics)} scorecard metrics.",
        quarter=quarter,
        meeting_slot=meeting_slot,
        rock_count=len(rocks),
        metric_count=len(metrics),
        checklists=checklists,
    )
