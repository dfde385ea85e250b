"""Knowledge-base assistant: retrieval-augmented answers for the marketing site."""

__version__ = "0.1.0"
