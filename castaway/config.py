"""
Castaway Configuration

Two layers of settings live here:

* ``Config`` reads process-level settings (reasoning provider, model, API keys)
  from environment variables, with a ``.env`` file loaded when present.
* ``SimulationConfig`` holds the tunable rules of the island economy. It is an
  ordinary pydantic model so a running simulation can accept validated partial
  updates from a control surface.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load .env file if it exists
load_dotenv()

MIN_TICK_INTERVAL_SECONDS = 0.01


class Config:
    """Application configuration loaded from environment variables."""

    # Reasoning provider. Gemini is the default model family for this simulator.
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "google")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gemini-2.5-flash")

    # API Keys
    GOOGLE_API_KEY: str | None = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")

    # Simulation defaults for runner scripts
    DEFAULT_TICK_COUNT: int = int(os.getenv("DEFAULT_TICK_COUNT", "240"))
    RANDOM_SEED: int | None = int(os.environ["CASTAWAY_SEED"]) if os.getenv("CASTAWAY_SEED") else None

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Project Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    SCENARIOS_DIR: Path = PROJECT_ROOT / "examples" / "scenarios"

    _KEYS_BY_PROVIDER = {
        "google": "GOOGLE_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "openai": "OPENAI_API_KEY",
    }

    @classmethod
    def api_key_for(cls, provider: str) -> str | None:
        attr = cls._KEYS_BY_PROVIDER.get(provider.lower())
        return getattr(cls, attr) if attr else None

    @classmethod
    def llm_available(cls) -> bool:
        """True when the configured provider has the credentials it needs."""
        return bool(cls.LLM_PROVIDER and cls.LLM_MODEL and cls.api_key_for(cls.LLM_PROVIDER))

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if required values are missing."""
        provider = cls.LLM_PROVIDER.lower()
        if provider not in cls._KEYS_BY_PROVIDER:
            raise ValueError(
                f"Unsupported LLM_PROVIDER '{cls.LLM_PROVIDER}'. "
                f"Choose one of: {', '.join(sorted(cls._KEYS_BY_PROVIDER))}"
            )
        if not cls.api_key_for(provider):
            raise ValueError(
                f"{cls._KEYS_BY_PROVIDER[provider]} is required when using the '{provider}' provider. "
                "Run without --llm to use the built-in deterministic reasoner instead."
            )

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "Castaway Configuration:",
            f"  LLM Provider: {cls.LLM_PROVIDER}",
            f"  LLM Model: {cls.LLM_MODEL}",
            f"  API key present: {'yes' if cls.api_key_for(cls.LLM_PROVIDER) else 'no'}",
            f"  Default Ticks: {cls.DEFAULT_TICK_COUNT}",
            f"  Seed: {cls.RANDOM_SEED if cls.RANDOM_SEED is not None else 'random'}",
        ]
        return "\n".join(lines)


class SimulationConfig(BaseModel):
    """Rules of the island economy.

    Durations are measured in ticks, one tick being one simulated hour. Rates
    are per tick unless stated otherwise.
    """

    tick_interval_seconds: float = Field(0.5, description="Wall-clock delay between ticks")
    map_width: int = Field(20, ge=4, description="Island grid width in cells")
    map_height: int = Field(20, ge=4, description="Island grid height in cells")

    max_energy: float = Field(100, gt=0)
    max_hunger: float = Field(100, gt=0)
    energy_decay_rate: float = Field(0.7, ge=0)
    hunger_decay_rate: float = Field(0.5, ge=0)
    energy_per_sleep_tick: float = Field(7, ge=0)
    hunger_per_coconut: float = Field(30, ge=0)
    hunger_per_fish: float = Field(50, ge=0)
    sleep_in_shelter_multiplier: float = Field(1.5, gt=0)
    leisure_threshold: float = Field(8, ge=0, description="Default leisure threshold for new actors")

    critical_hunger: float = Field(25, description="Hunger below this interrupts a plan")
    critical_energy: float = Field(20, description="Energy below this interrupts a plan")
    interruption_cooldown: int = Field(24, ge=0, description="Ticks before the same actor can be interrupted again")

    move_time: int = Field(5, ge=1, description="Ticks to cross the full map width")
    gather_time: int = Field(10, ge=1)
    consume_time: int = Field(2, ge=1)
    sleep_time: int = Field(10, ge=1)
    build_time: int = Field(20, ge=1)
    craft_time: int = Field(5, ge=1)
    thinking_time: int = Field(10, ge=1, description="Ticks a goal decision may take before the fallback is used")
    negotiation_timeout: int = Field(12, ge=1, description="Ticks a trade offer may stay unanswered")

    shelter_wood_cost: int = Field(10, ge=0)
    shelter_stone_cost: int = Field(5, ge=0)
    axe_wood_cost: int = Field(5, ge=0)
    axe_stone_cost: int = Field(2, ge=0)
    axe_depreciation_rate: float = Field(2, ge=0, description="Durability lost per wood gather")

    trade_attempt_cooldown: int = Field(24, ge=0)
    max_negotiation_turns: int = Field(4, ge=1)

    shelter_catastrophe_chance: float = Field(0.01, ge=0, le=1, description="Daily chance a shelter is destroyed")
    tree_wood_depletion_limit: int = Field(10, ge=1)
    tree_regrowth_time: int = Field(2400, ge=1, description="Ticks between new tree spawns")
    invention_chance: float = Field(0.005, ge=0, le=1, description="Per idle actor per tick")

    ai_model: Optional[str] = Field(None, description="Overrides Config.LLM_MODEL for the reasoning collaborator")
    ai_temperature: float = Field(0.7, ge=0, le=2)

    max_dispatch_chain: int = Field(8, ge=1, description="Events processed synchronously in one dispatcher pass")
    short_term_memory_limit: int = Field(10, ge=1)
    log_limit: int = Field(100, ge=1)

    @field_validator("tick_interval_seconds")
    @classmethod
    def _clamp_interval(cls, value: float) -> float:
        return max(MIN_TICK_INTERVAL_SECONDS, value)

    def with_updates(self, **changes: Any) -> "SimulationConfig":
        """Return a validated copy with ``changes`` applied.

        Unknown keys raise ``ValueError`` so typos from a control surface are
        not silently ignored.
        """
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown simulation setting(s): {', '.join(sorted(unknown))}")
        data: Dict[str, Any] = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)


def default_config(overrides: Optional[Dict[str, Any]] = None) -> SimulationConfig:
    """Build the default island rules, optionally with overrides applied."""
    config = SimulationConfig()
    if overrides:
        config = config.with_updates(**overrides)
    return config
