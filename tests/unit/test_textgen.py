import pytest
from pydantic_ai.models.test import TestModel

from portalflow.integrations.textgen import (
    AffiliateRecommendations,
    GenerationTask,
    PydanticAITextGenerator,
    ResearchReport,
    SlideDeck,
    StubTextGenerator,
    get_text_generator,
)


@pytest.mark.asyncio
async def test_pydantic_ai_generator_returns_typed_output():
    generator = PydanticAITextGenerator(TestModel())
    report = await generator.generate(
        GenerationTask.DEEP_RESEARCH, {"supplier_name": "Acme", "websites": ["https://acme.test"]}
    )
    assert isinstance(report, ResearchReport)

    deck = await generator.generate("generate_slides", {"supplier_name": "Acme"})
    assert isinstance(deck, SlideDeck)


@pytest.mark.asyncio
async def test_pydantic_ai_generator_reuses_agents():
    generator = PydanticAITextGenerator(TestModel())
    await generator.generate(GenerationTask.RECOMMEND_AFFILIATES, {})
    await generator.generate(GenerationTask.RECOMMEND_AFFILIATES, {})
    assert len(generator._agents) == 1


@pytest.mark.asyncio
async def test_pydantic_ai_enhance():
    generator = PydanticAITextGenerator(TestModel(custom_output_text="We deliver precision parts."))
    assert await generator.enhance("we do parts", {"audience": "OEM"}) == "We deliver precision parts."
    with pytest.raises(ValueError):
        await generator.enhance("   ")


@pytest.mark.asyncio
async def test_stub_generator():
    stub = StubTextGenerator()
    assert await stub.enhance("  we   machine parts ") == "We machine parts."
    assert await stub.enhance("Ready?") == "Ready?"

    report = await stub.generate(
        GenerationTask.DEEP_RESEARCH,
        {"supplier_name": "Acme", "target_oem": "Ford", "websites": ["https://acme.test"], "documents": []},
    )
    assert report.company_overview == "Acme assessed against Ford requirements."
    assert "1 source(s)" in report.readiness_summary

    assert await stub.generate(GenerationTask.RECOMMEND_AFFILIATES, {}) == AffiliateRecommendations()
    deck = await stub.generate(GenerationTask.GENERATE_SLIDES, {"supplier_name": "Acme", "target_oem": "Ford"})
    assert deck.title == "Acme: Ford Supplier Readiness"


def test_get_text_generator():
    assert isinstance(get_text_generator("stub"), StubTextGenerator)
    generator = get_text_generator("test")
    assert isinstance(generator, PydanticAITextGenerator)
    assert generator.model == "test"
