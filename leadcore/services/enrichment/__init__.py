from .llm_enricher import (
    Enricher,
    EnrichmentFailed,
    OpenAIEnricher,
    build_prompt,
    parse_enrichment,
)

__all__ = ["Enricher", "EnrichmentFailed", "OpenAIEnricher", "build_prompt", "parse_enrichment"]
