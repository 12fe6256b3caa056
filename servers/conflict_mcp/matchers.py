"""
Category matchers used when a competing event's category lies outside the
known taxonomy (foreign-language or provider-specific labels).

Both matchers expose:
- match_category(event_category, target_category, title?, description?) -> CategoryMatch

OpenAICategoryMatcher asks a chat model for a JSON verdict.
KeywordCategoryMatcher maps common Czech, German, French and Spanish
labels offline and is used when no API key is configured.
"""

import json
import os
from typing import Any, Optional, Protocol

import httpx
import structlog
from pydantic import ValidationError

from .errors import CategoryMatchParseError, ClassificationFailure
from .models import CategoryMatch, fold_text
from .resilience import retry_once

logger = structlog.get_logger()


OPENAI_API_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"

SYSTEM_PROMPT = """You are an expert event categorization assistant. Decide whether an event category matches a target category, even when they are in different languages or formats.

Key principles:
1. Consider semantic meaning, not just exact text matches
2. Recognize international category names (e.g. "Divadlo" = "Theater", "Hudba" = "Music")
3. Handle compound categories (e.g. "Divadlo, Hudba" = "Theater + Music")
4. Consider event context from title and description
5. Be conservative - only match when confident

Respond with a JSON object containing:
- isMatch: boolean
- confidence: number (0-1)
- reasoning: string explaining your decision
- suggestedCategory: string (if you suggest a better category)
- languageDetected: string (if you detect the language)"""


class CategoryMatcher(Protocol):
    async def match_category(
        self,
        event_category: str,
        target_category: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> CategoryMatch: ...


def build_prompt(
    event_category: str,
    target_category: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> str:
    return (
        "Analyze if this event category matches the target category:\n\n"
        f'Event Category: "{event_category}"\n'
        f'Target Category: "{target_category}"\n'
        f'Event Title: "{title or "N/A"}"\n'
        f'Event Description: "{(description or "N/A")[:500]}"\n\n'
        "Provide your analysis as JSON."
    )


def parse_category_match(content: Optional[str]) -> CategoryMatch:
    """
    Parse the model's JSON reply into a CategoryMatch.

    Accepts camelCase or snake_case keys.

    Raises:
        CategoryMatchParseError: empty reply, invalid JSON or wrong shape
    """
    if not content:
        raise CategoryMatchParseError("Empty response from category matcher")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise CategoryMatchParseError(f"Response is not JSON: {e}", raw=content) from e

    if not isinstance(data, dict):
        raise CategoryMatchParseError("Response is not a JSON object", raw=content)

    key_map = {
        "isMatch": "is_match",
        "suggestedCategory": "suggested_category",
        "languageDetected": "language_detected",
    }
    normalized = {key_map.get(k, k): v for k, v in data.items()}

    try:
        return CategoryMatch.model_validate(normalized)
    except ValidationError as e:
        raise CategoryMatchParseError(
            f"Response does not match schema: {e.error_count()} errors", raw=content
        ) from e


class OpenAICategoryMatcher:
    """Chat completions backed matcher."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        timeout: float = 15.0,
        max_retries: int = 1,
        base_url: str = OPENAI_API_URL,
    ):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_url = base_url

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def match_category(
        self,
        event_category: str,
        target_category: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> CategoryMatch:
        """
        Ask the model whether the categories match.

        Raises:
            ClassificationFailure: no API key, HTTP or transport failure
            CategoryMatchParseError: unusable reply
        """
        if not self.api_key:
            raise ClassificationFailure("OPENAI_API_KEY not set")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": build_prompt(event_category, target_category, title, description),
                },
            ],
            "temperature": 0.1,
            "max_tokens": 500,
            "response_format": {"type": "json_object"},
        }

        try:
            data = await retry_once(self._post, payload, max_retries=self.max_retries)
        except httpx.HTTPStatusError as e:
            raise ClassificationFailure(f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise ClassificationFailure(f"Request failed: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise CategoryMatchParseError("Malformed completion payload", raw=str(data)) from e

        match = parse_category_match(content)
        logger.debug(
            "ai_category_match",
            event_category=event_category,
            target_category=target_category,
            is_match=match.is_match,
            confidence=match.confidence,
        )
        return match

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
            response.raise_for_status()
            try:
                return response.json()
            except ValueError as e:
                raise CategoryMatchParseError(
                    "Completion response is not JSON", raw=response.text
                ) from e


# Foreign label -> English concept
LANGUAGE_MAPPINGS: dict[str, dict[str, str]] = {
    "cs": {
        "divadlo": "theater",
        "hudba": "music",
        "kultura": "culture",
        "zabava": "entertainment",
        "sport": "sports",
        "obchod": "business",
        "konference": "conferences",
        "vzdelani": "education",
        "vzdelavani": "education",
        "zdravi": "healthcare",
    },
    "de": {
        "theater": "theater",
        "musik": "music",
        "kultur": "culture",
        "sport": "sports",
        "geschaft": "business",
    },
    "fr": {
        "theatre": "theater",
        "musique": "music",
        "culture": "culture",
        "sport": "sports",
        "affaires": "business",
    },
    "es": {
        "teatro": "theater",
        "musica": "music",
        "cultura": "culture",
        "deporte": "sports",
        "negocios": "business",
    },
}

SEMANTIC_GROUPS = [
    ["entertainment", "music", "theater", "arts", "culture"],
    ["business", "conferences", "networking", "professional"],
    ["sports", "fitness", "recreation"],
    ["education", "academic", "learning", "training"],
]

LANGUAGE_INDICATORS: dict[str, list[str]] = {
    "cs": ["divadlo", "hudba", "kultura", "zabava", "obchod", "vzdelani", "konference"],
    "de": ["musik", "kultur", "geschaft"],
    "fr": ["theatre", "musique", "affaires"],
    "es": ["teatro", "musica", "cultura", "deporte", "negocios"],
}


def detect_language(text: str) -> str:
    folded = fold_text(text)
    for lang, indicators in LANGUAGE_INDICATORS.items():
        if any(indicator in folded for indicator in indicators):
            return lang
    return "en"


def translate_category(category: str) -> str:
    """Map a foreign category label to an English concept where known."""
    folded = fold_text(category)
    for mappings in LANGUAGE_MAPPINGS.values():
        for foreign, english in mappings.items():
            if foreign in folded:
                return english
    return folded


def semantically_related(cat1: str, cat2: str) -> bool:
    for group in SEMANTIC_GROUPS:
        if any(term in cat1 for term in group) and any(term in cat2 for term in group):
            return True
    return False


class KeywordCategoryMatcher:
    """Offline matcher built on language mappings and semantic groups."""

    async def match_category(
        self,
        event_category: str,
        target_category: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> CategoryMatch:
        mapped = translate_category(event_category)
        target = fold_text(target_category)

        is_match = bool(mapped) and bool(target) and (
            mapped in target or target in mapped or semantically_related(mapped, target)
        )

        if is_match:
            reasoning = f"Mapped '{event_category}' to '{mapped}' which matches '{target_category}'"
        else:
            reasoning = f"Could not map '{event_category}' to match '{target_category}'"

        return CategoryMatch(
            is_match=is_match,
            confidence=0.7 if is_match else 0.3,
            reasoning=reasoning,
            suggested_category=mapped,
            language_detected=detect_language(event_category),
        )
