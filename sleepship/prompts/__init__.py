"""Agent prompts."""

from sleepship.prompts.builder import PromptBuilder
from sleepship.prompts.templates import FIX_PROMPT, IMPLEMENTATION_PROMPT, RETRY_PROMPT, PromptTemplate

__all__ = ["PromptBuilder", "PromptTemplate", "IMPLEMENTATION_PROMPT", "RETRY_PROMPT", "FIX_PROMPT"]
