"""LLM-powered intelligence services."""

from .categorizer import Categorizer, EmailSample, LabeledEmail
from .classifier import ClassificationError, EmailClassifier
from .drafter import DraftingError, DraftingService
from .llm import LLMClient, LLMError, OllamaClient
from .rules import build_matcher, match_rules
from .style import StyleAnalyzer, default_style
from .transcriber import WhisperTranscriber

__all__ = [
    "Categorizer",
    "ClassificationError",
    "DraftingError",
    "DraftingService",
    "EmailClassifier",
    "EmailSample",
    "LLMClient",
    "LLMError",
    "LabeledEmail",
    "OllamaClient",
    "StyleAnalyzer",
    "WhisperTranscriber",
    "build_matcher",
    "default_style",
    "match_rules",
]
