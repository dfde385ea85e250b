"""Intent classification and retrieval filter extraction.

Classification never raises for well-formed text: empty or unparseable
input yields ``Intent.GENERAL`` with confidence 0.
"""

import json
import re
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from rag_assistant.documents.models import MetadataFilters
from rag_assistant.exceptions import AssistantError
from rag_assistant.intent.models import Intent, Query
from rag_assistant.llm.client import LLMClient
from rag_assistant.logging_config import get_logger
from rag_assistant.text import normalize

logger = get_logger(__name__)

DEFAULT_MAX_CHARS = 500

# Keywords are matched on accent-stripped, lowercased text.
INTENT_KEYWORDS: dict[Intent, tuple[str, ...]] = {
    Intent.PRICING: (
        "precio", "precios", "cuesta", "cuestan", "cuanto", "coste", "costo",
        "tarifa", "tarifas", "presupuesto", "euros", "barato", "caro",
        "inversion", "price", "prices", "cost", "how much",
    ),
    Intent.HOURS: (
        "horario", "horarios", "hora", "horas", "abre", "abris", "abren",
        "abierto", "cierra", "cerrais", "cierran", "cerrado", "festivos",
        "open", "opening", "close", "hours",
    ),
    Intent.LOCATION: (
        "donde", "ubicacion", "direccion", "llegar", "calle", "mapa",
        "aparcar", "parking", "zona", "where", "address", "location",
    ),
}

TAG_KEYWORDS: dict[str, tuple[str, ...]] = {
    "copas": ("copa", "copas", "coctel", "cocteles", "cocktail", "gin"),
    "bebidas": ("bebida", "bebidas", "cerveza", "vino", "refresco", "drinks"),
    "comida": ("comida", "comer", "plato", "platos", "tapas", "racion", "food"),
    "menu": ("menu", "carta"),
    "promociones": ("oferta", "ofertas", "promocion", "promociones", "descuento",
                    "happy hour"),
}

INTENT_TAGS = {
    Intent.PRICING: "precios",
    Intent.HOURS: "horarios",
    Intent.LOCATION: "ubicacion",
}

# Tags that pin retrieval to one section of the menu.
MENU_SOURCE_TAGS = ("copas", "bebidas", "comida")

_PATTERN_CACHE: dict[str, re.Pattern[str]] = {}


def _matches(keyword: str, text: str) -> bool:
    pattern = _PATTERN_CACHE.get(keyword)
    if pattern is None:
        pattern = re.compile(rf"\b{re.escape(keyword)}\b")
        _PATTERN_CACHE[keyword] = pattern
    return pattern.search(text) is not None


def build_filters(intent: Intent, tags: frozenset[str]) -> MetadataFilters:
    """Derive retrieval filters from an intent and its tags."""
    menu_tags = [t for t in MENU_SOURCE_TAGS if t in tags]
    return MetadataFilters(
        is_public=True,
        category=INTENT_TAGS.get(intent),
        source=f"menu/{menu_tags[0]}" if len(menu_tags) == 1 else None,
    )


def general_query(text: str, confidence: float = 0.0) -> Query:
    """A query with no detected intent."""
    return Query(
        text=text,
        intent=Intent.GENERAL,
        confidence=confidence,
        metadata_filters=MetadataFilters(is_public=True),
    )


class IntentClassifier(ABC):
    """Abstract base class for intent classifiers."""

    @abstractmethod
    async def classify(self, text: str) -> Query:
        """Label a question with an intent and retrieval filters.

        Args:
            text: Free text; overlong input is truncated.

        Returns:
            The classified Query.
        """
        ...


class KeywordIntentClassifier(IntentClassifier):
    """Rule-based classifier over Spanish and English keyword lists.

    Confidence grows with the number of distinct keywords matched for the
    winning intent and drops when another intent matches as strongly.
    """

    NO_SIGNAL_CONFIDENCE = 0.3

    def __init__(self, max_chars: int = DEFAULT_MAX_CHARS) -> None:
        self._max_chars = max_chars

    def classify_sync(self, text: str) -> Query:
        """Synchronous classification, used directly by other classifiers."""
        truncated = (text or "").strip()[: self._max_chars]
        normalized = normalize(truncated)

        if not re.search(r"\w", normalized):
            return general_query(truncated)

        hits = {
            intent: sum(1 for kw in keywords if _matches(kw, normalized))
            for intent, keywords in INTENT_KEYWORDS.items()
        }
        tags = {
            tag
            for tag, keywords in TAG_KEYWORDS.items()
            if any(_matches(kw, normalized) for kw in keywords)
        }

        ranked = sorted(hits.items(), key=lambda item: item[1], reverse=True)
        best_intent, best_hits = ranked[0]
        runner_up_hits = ranked[1][1]

        if best_hits == 0:
            return Query(
                text=truncated,
                intent=Intent.GENERAL,
                tags=frozenset(tags),
                confidence=self.NO_SIGNAL_CONFIDENCE,
                metadata_filters=build_filters(Intent.GENERAL, frozenset(tags)),
            )

        confidence = min(0.95, 0.6 + 0.15 * (best_hits - 1))
        if runner_up_hits == best_hits:
            confidence = 0.4

        tags.add(INTENT_TAGS[best_intent])
        frozen_tags = frozenset(tags)
        return Query(
            text=truncated,
            intent=best_intent,
            tags=frozen_tags,
            confidence=confidence,
            metadata_filters=build_filters(best_intent, frozen_tags),
        )

    async def classify(self, text: str) -> Query:
        """Classify by keyword matching."""
        return self.classify_sync(text)


class _LLMClassification(BaseModel):
    """Shape of the JSON the generation model is asked to return."""

    intent: str = "general"
    tags: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class LLMIntentClassifier(IntentClassifier):
    """Asks the generation model for a JSON classification.

    Falls back to keyword classification when the model is unavailable or
    returns something that does not parse.
    """

    PROMPT = """Analyze this customer query and extract metadata. Return ONLY valid JSON.
Available tags: copas, bebidas, comida, precios, horarios, ubicacion, menu, promociones
Query: "{query}"
JSON structure:
{{"intent": "pricing|hours|location|general", "tags": ["tag1"], "confidence": 0.95}}"""

    def __init__(
        self,
        llm_client: LLMClient,
        fallback: KeywordIntentClassifier | None = None,
        max_chars: int = DEFAULT_MAX_CHARS,
    ) -> None:
        self._llm_client = llm_client
        self._fallback = fallback or KeywordIntentClassifier(max_chars=max_chars)
        self._max_chars = max_chars

    @staticmethod
    def parse(raw: str) -> _LLMClassification:
        """Parse model output, tolerating markdown code fences.

        Raises:
            ValueError: If the output is not a valid classification.
        """
        cleaned = re.sub(r"```(?:json)?", "", raw).strip()
        return _LLMClassification.model_validate(json.loads(cleaned))

    async def classify(self, text: str) -> Query:
        """Classify with the model, or by keywords if that fails."""
        truncated = (text or "").strip()[: self._max_chars]
        if not re.search(r"\w", truncated):
            return general_query(truncated)

        try:
            result = await self._llm_client.generate_text(
                prompt=self.PROMPT.format(query=truncated),
                temperature=0.1,
                max_tokens=250,
            )
            parsed = self.parse(result.content)
        except (AssistantError, ValueError) as e:
            logger.warning(
                "LLM intent classification failed, using keywords",
                extra={"error": str(e)},
            )
            return self._fallback.classify_sync(truncated)

        label = parsed.intent.removesuffix("_query")
        known = {i.value for i in Intent}
        intent = Intent(label) if label in known else Intent.GENERAL
        tags = frozenset(t.lower() for t in parsed.tags)
        return Query(
            text=truncated,
            intent=intent,
            tags=tags,
            confidence=parsed.confidence,
            metadata_filters=build_filters(intent, tags),
        )
