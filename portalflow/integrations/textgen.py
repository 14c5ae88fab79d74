"""LLM-backed text generation for the wizard's AI steps."""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple, Type

from pydantic import BaseModel, Field
from pydantic_ai import Agent

from ..constants import DEFAULT_LLM_MODEL

logger = logging.getLogger(__name__)


class ResearchReport(BaseModel):
    company_overview: str
    capabilities: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)
    gaps: List[str] = Field(default_factory=list)
    readiness_summary: str = ""


class AffiliateRecommendation(BaseModel):
    name: str
    expertise: str
    reason: str


class AffiliateRecommendations(BaseModel):
    recommendations: List[AffiliateRecommendation] = Field(default_factory=list)


class Slide(BaseModel):
    title: str
    bullets: List[str] = Field(default_factory=list)


class SlideDeck(BaseModel):
    title: str
    slides: List[Slide] = Field(default_factory=list)


class GenerationTask(str, Enum):
    DEEP_RESEARCH = "deep_research"
    RECOMMEND_AFFILIATES = "recommend_affiliates"
    GENERATE_SLIDES = "generate_slides"


TASKS: Dict[GenerationTask, Tuple[Type[BaseModel], str]] = {
    GenerationTask.DEEP_RESEARCH: (
        ResearchReport,
        "You analyze a supplier's public websites and documents to assess readiness "
        "to supply the named OEM. Summarize the company, list capabilities and "
        "certifications found, and list gaps against typical OEM supplier requirements.",
    ),
    GenerationTask.RECOMMEND_AFFILIATES: (
        AffiliateRecommendations,
        "You recommend consulting affiliates who can close the supplier's readiness gaps. "
        "Explain briefly why each affiliate fits.",
    ),
    GenerationTask.GENERATE_SLIDES: (
        SlideDeck,
        "You draft a concise slide deck presenting the supplier's OEM readiness "
        "assessment, gaps and recommended next steps.",
    ),
}

ENHANCE_PROMPT = (
    "Rewrite the user's text so it is clear, professional and suitable for a "
    "proposal. Keep every fact. Return only the rewritten text."
)


class TextGenerator(Protocol):
    """Collaborator that enhances prose and generates structured artifacts."""

    async def enhance(self, text: str, context: Optional[Mapping[str, Any]] = None) -> str:
        ...

    async def generate(self, task: GenerationTask, context: Mapping[str, Any]) -> BaseModel:
        ...


def _render(context: Optional[Mapping[str, Any]]) -> str:
    if not context:
        return ""
    return json.dumps(dict(context), indent=2, default=str)


class PydanticAITextGenerator:
    """Text generator backed by pydantic-ai agents, one per output type."""

    def __init__(self, model: Any = DEFAULT_LLM_MODEL) -> None:
        self.model = model
        self._agents: Dict[Any, Agent] = {}

    def _agent(self, key: Any, output_type: Any, system_prompt: str) -> Agent:
        if key not in self._agents:
            self._agents[key] = Agent(self.model, output_type=output_type, system_prompt=system_prompt)
        return self._agents[key]

    async def enhance(self, text: str, context: Optional[Mapping[str, Any]] = None) -> str:
        if not text or not text.strip():
            raise ValueError("Nothing to enhance")
        agent = self._agent("enhance", str, ENHANCE_PROMPT)
        prompt = text
        if context:
            prompt = f"{text}\n\nContext:\n{_render(context)}"
        result = await agent.run(prompt)
        return result.output

    async def generate(self, task: GenerationTask, context: Mapping[str, Any]) -> BaseModel:
        task = GenerationTask(task)
        output_type, system_prompt = TASKS[task]
        agent = self._agent(task, output_type, system_prompt)
        logger.info(f"Generating {task.value} with model {self.model}")
        result = await agent.run(_render(context))
        return result.output


class StubTextGenerator:
    """Offline generator that only restates its inputs.

    Selected with ``llm.model: stub``. Outputs have the same types as the
    model-backed generator but contain no invented findings.
    """

    async def enhance(self, text: str, context: Optional[Mapping[str, Any]] = None) -> str:
        cleaned = " ".join(text.split())
        if not cleaned:
            raise ValueError("Nothing to enhance")
        cleaned = cleaned[0].upper() + cleaned[1:]
        return cleaned if cleaned[-1] in ".!?" else f"{cleaned}."

    async def generate(self, task: GenerationTask, context: Mapping[str, Any]) -> BaseModel:
        task = GenerationTask(task)
        supplier = context.get("supplier_name") or "The supplier"
        oem = context.get("target_oem") or "the target OEM"
        if task is GenerationTask.DEEP_RESEARCH:
            sources = list(context.get("websites") or []) + list(context.get("documents") or [])
            return ResearchReport(
                company_overview=f"{supplier} assessed against {oem} requirements.",
                readiness_summary=f"{len(sources)} source(s) queued for review: {', '.join(map(str, sources))}",
            )
        if task is GenerationTask.RECOMMEND_AFFILIATES:
            return AffiliateRecommendations()
        return SlideDeck(
            title=f"{supplier}: {oem} Supplier Readiness",
            slides=[
                Slide(title="Overview", bullets=[f"{supplier} readiness for {oem}"]),
                Slide(title="Next Steps", bullets=["Review gaps", "Assign affiliates"]),
            ],
        )


def get_text_generator(model: Any = DEFAULT_LLM_MODEL) -> TextGenerator:
    """Return the stub generator for ``"stub"``, otherwise a pydantic-ai one."""
    if model == "stub":
        return StubTextGenerator()
    return PydanticAITextGenerator(model)
