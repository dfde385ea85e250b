"""Text normalisation shared by intent classification and reranking."""

import re
import unicodedata

STOPWORDS = frozenset(
    {
        # Spanish
        "que", "qué", "los", "las", "del", "por", "para", "con", "una", "uno",
        "unos", "unas", "como", "cómo", "este", "esta", "esto", "ese", "esa",
        "hay", "son", "está", "estan", "están", "muy", "más", "mas", "pero",
        "sus", "les", "nos", "vuestro", "vuestra", "tenéis", "teneis",
        # English
        "the", "and", "for", "are", "you", "your", "what", "how", "does",
        "with", "this", "that", "have", "can",
    }
)

_WORD_RE = re.compile(r"\w+")


def strip_accents(text: str) -> str:
    """Remove diacritics so "Cuánto" and "cuanto" compare equal."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


_STOP = frozenset(strip_accents(w) for w in STOPWORDS)


def normalize(text: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    return " ".join(strip_accents(text).lower().split())


def tokenize(text: str) -> set[str]:
    """Content words of a text: normalised, longer than two characters."""
    return {
        token
        for token in _WORD_RE.findall(normalize(text))
        if len(token) > 2 and token not in _STOP
    }
