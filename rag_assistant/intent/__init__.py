"""Intent classification module."""

from rag_assistant.intent.classifier import (
    IntentClassifier,
    KeywordIntentClassifier,
    LLMIntentClassifier,
)
from rag_assistant.intent.models import Intent, Query

__all__ = [
    "Intent",
    "IntentClassifier",
    "KeywordIntentClassifier",
    "LLMIntentClassifier",
    "Query",
]
