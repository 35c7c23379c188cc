"""
LLM Enricher - turn a lead's scraped payload into a short summary and title.

The completion must be exactly one JSON object with string `summary` and
`title_guess` fields. Anything else (transport error, provider error,
timeout, prose around the JSON, missing or extra keys) raises
EnrichmentFailed. There is no retry here: a failed lead goes back to
`scraped` and the next tick picks it up again.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from ...config import EnrichmentSettings
from ...models.leads import EnrichInfo, ScrapInfo

logger = logging.getLogger(__name__)


ENRICHMENT_PROMPT = """You are an AI enrichment assistant.
Input is scraped raw data from a website.

Data:
{data}

Task:
1. Write a clear 3-4 sentence **summary** describing what this company/product does.
2. Suggest a short, catchy **title_guess** (max 6 words).

Return ONLY valid JSON.
Do not include any explanation, commentary, or text outside JSON.
Format strictly as:

{{
  "summary": "string",
  "title_guess": "string"
}}"""


class EnrichmentFailed(Exception):
    """The enrichment call failed or its output broke the JSON contract."""


def build_prompt(scrap_info: ScrapInfo, url: Optional[str] = None) -> str:
    """Render the enrichment prompt for a scraped payload."""
    payload: Dict[str, Any] = scrap_info.as_payload()
    if url:
        payload["url"] = url
    return ENRICHMENT_PROMPT.format(data=json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def parse_enrichment(text: Optional[str]) -> EnrichInfo:
    """
    Parse the completion text against the enrichment contract.

    Args:
        text: Raw completion text

    Returns:
        EnrichInfo with summary and title_guess

    Raises:
        EnrichmentFailed: text is empty, not JSON, or not the expected object
    """
    if not text or not text.strip():
        raise EnrichmentFailed("Empty completion")
    try:
        data = json.loads(text.strip())
    except json.JSONDecodeError as e:
        raise EnrichmentFailed(f"Completion is not valid JSON: {text[:200]!r}") from e
    if not isinstance(data, dict):
        raise EnrichmentFailed(f"Completion is not a JSON object: {type(data).__name__}")
    try:
        return EnrichInfo.model_validate(data)
    except ValidationError as e:
        raise EnrichmentFailed(f"Completion does not match the enrichment shape: {e}") from e


class Enricher(ABC):
    """Abstract enrichment adapter."""

    @abstractmethod
    async def enrich(self, scrap_info: ScrapInfo, url: Optional[str] = None) -> EnrichInfo:
        """Return the structured enrichment or raise EnrichmentFailed."""


class OpenAIEnricher(Enricher):
    """Enricher backed by the OpenAI chat completions API."""

    def __init__(self, settings: EnrichmentSettings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        if client is None:
            if not settings.api_key:
                raise ValueError("Missing OPENAI_API_KEY environment variable")
            client = AsyncOpenAI(api_key=settings.api_key, timeout=settings.timeout_seconds, max_retries=0)
        self.client = client

    async def complete(self, prompt: str) -> str:
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.settings.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=self.settings.temperature,
                    max_tokens=self.settings.max_tokens,
                    response_format={"type": "json_object"},
                ),
                timeout=self.settings.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise EnrichmentFailed(f"Completion timed out after {self.settings.timeout_seconds}s") from e
        except OpenAIError as e:
            raise EnrichmentFailed(f"Completion request failed: {e}") from e

        if not response.choices:
            raise EnrichmentFailed("Completion returned no choices")
        return response.choices[0].message.content or ""

    async def enrich(self, scrap_info: ScrapInfo, url: Optional[str] = None) -> EnrichInfo:
        prompt = build_prompt(scrap_info, url)
        text = await self.complete(prompt)
        logger.debug("[Enrichment] Completion: %s", text[:500])
        return parse_enrichment(text)
