"""LLM-backed reasoner."""

from __future__ import annotations

from typing import Optional

from castaway.config import Config, SimulationConfig
from castaway.llm_utils import call_llm_with_retries
from castaway.logging_utils import LOG_TAG_LLM, debug_llm_enabled, log_llm
from castaway.schemas import (
    GenericInventionType,
    GoalDecision,
    InventionIcon,
    InventionSpec,
    TradeDecision,
)

from .fallback import DEFAULT_INVENTION_ICON
from .prompts import DEFAULT_PROMPTS, PromptLibrary
from .reasoner import GoalRequest, TradeRequest
from .renderers import (
    RenderedPrompt,
    goal_prompt_values,
    invention_icon_values,
    invention_spec_values,
    render_prompt,
    trade_prompt_values,
)

INVENTION_TEMPERATURE = 0.9
ICON_TEMPERATURE = 0.2


class ReasonerUnavailableError(ValueError):
    """Raised when an LLM reasoner is built without provider credentials."""


class LLMReasoner:
    """Reasoner that delegates every decision to an LLM.

    The model named in ``SimulationConfig.ai_model`` is used when set, so a
    running simulation can switch models through a config update; otherwise
    ``Config.LLM_MODEL`` applies.
    """

    def __init__(
        self,
        *,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        prompt_library: Optional[PromptLibrary] = None,
        max_attempts: int = 3,
    ) -> None:
        self.provider = provider or Config.LLM_PROVIDER
        self.model = model or Config.LLM_MODEL
        if not self.provider or not self.model:
            raise ReasonerUnavailableError(
                "LLMReasoner requires LLM configuration. Set LLM_PROVIDER and LLM_MODEL "
                "environment variables, or use FallbackReasoner for offline runs."
            )
        self.prompt_library = prompt_library or DEFAULT_PROMPTS
        self.max_attempts = max_attempts

    def _template(self, name: str):
        try:
            return self.prompt_library.get(name)
        except KeyError:
            return DEFAULT_PROMPTS.get(name)

    def _model_for(self, config: SimulationConfig) -> str:
        return config.ai_model or self.model

    def _debug(self, label: str, rendered: RenderedPrompt) -> None:
        if not debug_llm_enabled():
            return
        print(f"\n{'=' * 80}")
        print(f"[LLM {label}]")
        print(f"{'=' * 80}")
        print("\n[SYSTEM PROMPT]")
        print(f"{'-' * 80}")
        print(rendered.system)
        print("\n[USER PROMPT]")
        print(f"{'-' * 80}")
        print(rendered.user)
        print(f"{'=' * 80}\n")

    async def decide_goal(self, request: GoalRequest) -> GoalDecision:
        rendered = render_prompt(self._template("goal"), goal_prompt_values(request))
        self._debug(f"GOAL] Actor: {request.actor.id}", rendered)
        log_llm(f"  {LOG_TAG_LLM} [{request.actor.name}] Deciding next goal...")
        decision = await call_llm_with_retries(
            system_prompt=rendered.system,
            user_prompt=rendered.user,
            llm_provider=self.provider,
            llm_model=self._model_for(request.config),
            response_model=GoalDecision,
            temperature=request.config.ai_temperature,
            max_attempts=self.max_attempts,
        )
        if debug_llm_enabled():
            print(f"[LLM RESPONSE] {decision.model_dump_json(indent=2)}")
        return decision

    async def decide_trade(self, request: TradeRequest) -> TradeDecision:
        rendered = render_prompt(self._template("trade"), trade_prompt_values(request))
        self._debug(f"TRADE] Actor: {request.actor.id}", rendered)
        log_llm(f"  {LOG_TAG_LLM} [{request.actor.name}] Considering offer from {request.counterpart.name}...")
        decision = await call_llm_with_retries(
            system_prompt=rendered.system,
            user_prompt=rendered.user,
            llm_provider=self.provider,
            llm_model=self._model_for(request.config),
            response_model=TradeDecision,
            temperature=request.temperature,
            max_attempts=self.max_attempts,
        )
        if debug_llm_enabled():
            print(f"[LLM RESPONSE] {decision.model_dump_json(indent=2)}")
        return decision

    async def specify_invention(
        self, category: GenericInventionType, config: SimulationConfig
    ) -> Optional[InventionSpec]:
        rendered = render_prompt(self._template("invention_spec"), invention_spec_values(category))
        self._debug(f"INVENTION] Category: {category.value}", rendered)
        return await call_llm_with_retries(
            system_prompt=rendered.system,
            user_prompt=rendered.user,
            llm_provider=self.provider,
            llm_model=self._model_for(config),
            response_model=InventionSpec,
            temperature=INVENTION_TEMPERATURE,
            max_attempts=self.max_attempts,
        )

    async def design_icon(self, spec: InventionSpec, config: SimulationConfig) -> str:
        rendered = render_prompt(self._template("invention_icon"), invention_icon_values(spec))
        icon = await call_llm_with_retries(
            system_prompt=rendered.system,
            user_prompt=rendered.user,
            llm_provider=self.provider,
            llm_model=self._model_for(config),
            response_model=InventionIcon,
            temperature=ICON_TEMPERATURE,
            max_attempts=self.max_attempts,
        )
        return icon.svg.strip() or DEFAULT_INVENTION_ICON
