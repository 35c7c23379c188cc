"""
Tests for the LLM enrichment adapter: prompt rendering, the strict JSON
contract, and how provider failures surface.
"""

import asyncio
import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from leadcore.config import EnrichmentSettings
from leadcore.models.leads import EnrichInfo, parse_scrap_info
from leadcore.services.enrichment import EnrichmentFailed, OpenAIEnricher, build_prompt, parse_enrichment


class FakeCompletions:
    def __init__(self, content=None, error=None, delay=0, choices=True):
        self.content = content
        self.error = error
        self.delay = delay
        self.choices = choices
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        if not self.choices:
            return SimpleNamespace(choices=[])
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(**kwargs):
    completions = FakeCompletions(**kwargs)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def make_enricher(timeout_seconds=5.0, **kwargs):
    client, completions = fake_client(**kwargs)
    settings = EnrichmentSettings(api_key="test", timeout_seconds=timeout_seconds)
    return OpenAIEnricher(settings, client=client), completions


SCRAP_INFO = parse_scrap_info({"title": "Acme Co", "desc": "sells widgets", "emails": ["hello@acme.test"]})


@pytest.mark.unit
class TestParseEnrichment:
    def test_valid_object(self):
        info = parse_enrichment('{"summary": "Acme sells widgets.", "title_guess": "Acme Widgets"}')
        assert info == EnrichInfo(summary="Acme sells widgets.", title_guess="Acme Widgets")

    def test_surrounding_whitespace_is_fine(self):
        info = parse_enrichment('\n  {"summary": "s", "title_guess": "t"}  \n')
        assert info.title_guess == "t"

    @pytest.mark.parametrize("text", [
        "not json",
        "",
        "   ",
        None,
        '["summary", "title_guess"]',
        'Here you go: {"summary": "s", "title_guess": "t"}',
        '{"summary": "s"}',
        '{"summary": "s", "title_guess": "t", "extra": 1}',
        '{"summary": 42, "title_guess": "t"}',
        '{"summary": "s", "title_guess": null}',
    ])
    def test_contract_violations_raise(self, text):
        with pytest.raises(EnrichmentFailed):
            parse_enrichment(text)


@pytest.mark.unit
class TestBuildPrompt:
    def test_prompt_embeds_payload_and_url(self):
        prompt = build_prompt(SCRAP_INFO, "https://acme.example.com")

        assert '"title": "Acme Co"' in prompt
        assert '"url": "https://acme.example.com"' in prompt
        assert "title_guess" in prompt
        assert "Return ONLY valid JSON." in prompt

    def test_opaque_payload_is_passed_through(self):
        prompt = build_prompt(parse_scrap_info({"html": "<h1>Acme</h1>"}))
        assert '"html": "<h1>Acme</h1>"' in prompt
        assert '"url"' not in prompt


@pytest.mark.unit
class TestOpenAIEnricher:
    def test_returns_structured_result(self):
        enricher, completions = make_enricher(content=json.dumps({"summary": "s", "title_guess": "t"}))
        info = asyncio.run(enricher.enrich(SCRAP_INFO, "https://acme.example.com"))

        assert info.summary == "s"
        request = completions.requests[0]
        assert request["model"] == "gpt-4o-mini"
        assert request["response_format"] == {"type": "json_object"}
        assert "https://acme.example.com" in request["messages"][0]["content"]

    def test_non_json_completion_raises(self):
        enricher, _ = make_enricher(content="not json")
        with pytest.raises(EnrichmentFailed):
            asyncio.run(enricher.enrich(SCRAP_INFO))

    def test_provider_error_raises(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        enricher, _ = make_enricher(error=openai.APIConnectionError(request=request))
        with pytest.raises(EnrichmentFailed, match="request failed"):
            asyncio.run(enricher.enrich(SCRAP_INFO))

    def test_timeout_raises(self):
        enricher, _ = make_enricher(timeout_seconds=0.01, delay=1, content="{}")
        with pytest.raises(EnrichmentFailed, match="timed out"):
            asyncio.run(enricher.enrich(SCRAP_INFO))

    def test_no_choices_raises(self):
        enricher, _ = make_enricher(choices=False)
        with pytest.raises(EnrichmentFailed, match="no choices"):
            asyncio.run(enricher.enrich(SCRAP_INFO))

    def test_missing_api_key_is_rejected(self):
        with pytest.raises(ValueError):
            OpenAIEnricher(EnrichmentSettings(api_key=None))
