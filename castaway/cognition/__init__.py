"""Reasoning collaborators for castaway actors.

``Reasoner`` is the interface the engine talks to. ``LLMReasoner`` asks a
language model; ``FallbackReasoner`` applies fixed survival rules and is also
what the engine substitutes whenever a collaborator call fails.
"""

from .reasoner import GoalRequest, Reasoner, TradeRequest
from .fallback import (
    DEFAULT_INVENTION_ICON,
    FallbackReasoner,
    fallback_goal,
    fallback_trade,
)
from .prompts import DEFAULT_PROMPTS, PromptLibrary, PromptTemplate
from .renderers import RenderedPrompt, render_prompt
from .llm import LLMReasoner, ReasonerUnavailableError

__all__ = [
    "GoalRequest",
    "TradeRequest",
    "Reasoner",
    "FallbackReasoner",
    "fallback_goal",
    "fallback_trade",
    "DEFAULT_INVENTION_ICON",
    "PromptLibrary",
    "PromptTemplate",
    "DEFAULT_PROMPTS",
    "RenderedPrompt",
    "render_prompt",
    "LLMReasoner",
    "ReasonerUnavailableError",
]
