"""Natural-language prospect search chat backed by the action gateway."""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, List, Mapping, Tuple

from ..contracts import ActionKind, Message, Prospect
from ..gateway.base import BaseGateway
from ..integrations.apollo import SearchCriteria
from .base import ConversationalFlow, Intent, IntentMatcher, Transition, assistant

logger = logging.getLogger(__name__)

COLLECTING = "collecting_criteria"
REVIEWING = "reviewing"
COMPLETE = "complete"

TITLE_PATTERN = r"\b(ctos?|ceos?|vps?|directors?|managers?|founders?|head of|chief)\b"
COMPANY_TYPE_PATTERN = r"\b(saas|startups?|enterprises?|manufacturing|healthcare|tech|software|ai|fintech)\b"

# (pattern, criteria field, value). Later matches for the same field win,
# except where the value is only a fallback.
CRITERIA_RULES: List[Tuple[str, str, Any]] = [
    (r"\bctos?\b|chief technology", "titles", ["CTO", "Chief Technology Officer"]),
    (r"\bceos?\b|chief executive", "titles", ["CEO", "Chief Executive Officer"]),
    (r"\bvps?\b.*sales|sales.*\bvps?\b", "titles", ["VP of Sales", "Vice President of Sales"]),
    (r"marketing.*director|director.*marketing", "titles", ["Marketing Director", "Director of Marketing"]),
    (r"founder", "titles", ["Founder", "Co-Founder", "CEO & Founder"]),
    (r"\bhr\b.*manager|human resources", "titles", ["HR Manager", "Human Resources Manager"]),
    (r"\bsaas\b", "industries", ["SaaS", "Software"]),
    (r"manufacturing", "industries", ["Manufacturing", "Industrial"]),
    (r"healthcare", "industries", ["Healthcare", "Medical"]),
    (r"\bai\b|artificial intelligence", "industries", ["Artificial Intelligence", "Machine Learning"]),
    (r"fintech", "industries", ["Fintech", "Financial Services"]),
    (r"california", "locations", ["California, USA"]),
    (r"texas", "locations", ["Texas, USA"]),
    (r"new york", "locations", ["New York, USA"]),
    (r"50.*200|small.*medium", "company_size", "50-200 employees"),
    (r"500\+|\blarge\b|enterprise", "company_size", "500+ employees"),
    (r"startup", "company_size", "1-50 employees"),
    (r"hubspot", "technologies", ["HubSpot"]),
    (r"salesforce", "technologies", ["Salesforce"]),
    (r"series a", "keywords", ["Series A", "Funded"]),
]
COUNTRY_FALLBACK = (r"\bus\b|\busa\b|united states", "locations", ["United States"])

CLARIFYING_QUESTIONS = [
    "What job titles or roles are you looking for? (e.g., CTO, VP of Sales, Marketing Director)",
    "What type of companies are you targeting? (e.g., SaaS, Healthcare, Manufacturing)",
    "Do you have a preferred company size? (e.g., 50-200 employees, Enterprise)",
    "Any specific geographic location? (e.g., US, California, Europe)",
]

RESULT_ACTIONS = (("Save to List", "save_list"), ("New Search", "new_search"))


def extract_criteria(text: str) -> SearchCriteria:
    """Map a free-text request onto structured search criteria."""
    values: dict = {}
    for pattern, field, value in CRITERIA_RULES:
        if re.search(pattern, text, re.IGNORECASE):
            values[field] = value
    pattern, field, value = COUNTRY_FALLBACK
    if field not in values and re.search(pattern, text, re.IGNORECASE):
        values[field] = value
    if not values:
        values["keywords"] = [text.strip()]
    return SearchCriteria(**values)


class ProspectSearchFlow(ConversationalFlow):
    """Turn plain-language requests into prospect searches and saved lists."""

    phases = (COLLECTING, REVIEWING, COMPLETE)
    matcher = IntentMatcher(
        {
            COLLECTING: [("criteria", TITLE_PATTERN), ("criteria", COMPANY_TYPE_PATTERN)],
            REVIEWING: [
                ("save_list", r"save_list|\bsave\b"),
                ("new_search", r"new_search"),
                ("criteria", TITLE_PATTERN),
                ("criteria", COMPANY_TYPE_PATTERN),
            ],
        }
    )

    def __init__(self, gateway: BaseGateway, list_name: str | None = None) -> None:
        self.gateway = gateway
        self.list_name = list_name

    def intro_message(self) -> Message:
        return assistant(
            "Welcome to AI prospect search! I can help you find prospects using natural language. "
            "Try asking something like:\n\n"
            '- "Find CTOs at SaaS companies with 50-200 employees"\n'
            '- "Show me VPs of Sales at manufacturing companies in Texas"\n'
            '- "Search for marketing directors at healthcare companies"\n\n'
            "What kind of prospects are you looking for today?"
        )

    def reprompt(self, phase: str, user_input: str) -> Message:
        if phase == COLLECTING:
            return assistant(
                "I'd like to help you find the right prospects. Could you provide more details?",
                data={"clarifying_questions": CLARIFYING_QUESTIONS},
            )
        if phase == REVIEWING:
            return assistant(
                "You can save these results to a list or describe a different search.",
                RESULT_ACTIONS,
            )
        return assistant("This search is finished. Start a new conversation to search again.")

    async def handle(self, phase: str, intent: Intent, context: Mapping[str, Any]) -> Transition:
        if intent.name == "criteria":
            return await self._search(phase, intent.text)
        if intent.name == "new_search":
            return Transition(
                next_phase=REVIEWING,
                message=assistant("Sure. Describe the prospects you are looking for."),
            )
        return await self._save(context)

    async def _search(self, phase: str, text: str) -> Transition:
        criteria = extract_criteria(text)
        if criteria.is_empty():
            return Transition(next_phase=phase, message=self.reprompt(COLLECTING, text))

        result = await self.gateway.invoke(
            ActionKind.SEARCH_PROSPECTS, {"criteria": criteria.model_dump()}
        )
        if not result.ok:
            logger.warning(f"Prospect search failed: {result.error}")
            return Transition(
                next_phase=phase,
                message=assistant(
                    f"I couldn't run that search: {result.error}. Try again or adjust your criteria.",
                    data={"error": result.error},
                ),
            )

        results = result.value or []
        criteria_lines = "\n".join(criteria.describe())
        return Transition(
            next_phase=REVIEWING,
            updates={"criteria": criteria.model_dump(), "results": results},
            message=assistant(
                f"I found **{len(results)} prospects** matching your criteria:\n\n{criteria_lines}\n\n"
                "Here are the top results. You can refine your search or take action on these prospects.",
                RESULT_ACTIONS,
                data={"criteria": criteria.model_dump(), "results": results},
            ),
        )

    async def _save(self, context: Mapping[str, Any]) -> Transition:
        results = context.get("results") or []
        if not results:
            return Transition(
                next_phase=REVIEWING,
                message=assistant("There are no results to save yet. Describe a search first."),
            )

        list_name = self.list_name or f"Prospects {date.today().isoformat()}"
        items = [Prospect.model_validate(r).model_dump(mode="json") for r in results]
        outcome = await self.gateway.invoke(
            ActionKind.SAVE_PROSPECT_LIST, {"list_name": list_name, "items": items}
        )
        if not outcome.ok:
            return Transition(
                next_phase=REVIEWING,
                message=assistant(f"I couldn't save the list: {outcome.error}.", RESULT_ACTIONS),
            )

        added = outcome.value["added"]
        skipped = outcome.value["skipped"]
        return Transition(
            next_phase=COMPLETE,
            updates={"list_name": list_name},
            message=assistant(
                f"Saved **{added}** new prospects to **{list_name}**"
                + (f" ({skipped} were already on the list)." if skipped else "."),
                data={"list_name": list_name, "added": added, "skipped": skipped},
            ),
        )
