"""AI completion capability and extraction prompts."""

from .client import CompletionClient, OllamaCompletionClient, build_completion_client
from .prompts import PROMPT_VERSION, ExtractionPrompt, RepairPrompt

__all__ = [
    "CompletionClient",
    "OllamaCompletionClient",
    "build_completion_client",
    "PROMPT_VERSION",
    "ExtractionPrompt",
    "RepairPrompt",
]
