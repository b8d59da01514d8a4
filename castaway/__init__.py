"""
Castaway - tick-driven island economy simulator.

Castaways gather, eat, sleep, build, trade and invent on a small island. The
engine is deterministic; goal choices, trade answers and inventions come from
a pluggable reasoner (an LLM or built-in survival rules).
"""

__version__ = "0.1.0"

# Session and control surface
from .simulation import Simulation, SimulationSnapshot, default_reasoner

# Engine components
from .context import SimulationContext
from .scheduler import TickScheduler
from .dispatcher import EventDispatcher
from .event_queue import EventQueue
from .trade import TradeProtocol
from .inventions import InventionDiscovery
from .tasks import RequestTracker
from .durations import action_duration, gather_yield, travel_time
from .world import World
from .event_log import EventLog, LogEntry

# Reasoning collaborators
from .cognition import (
    FallbackReasoner,
    GoalRequest,
    LLMReasoner,
    Reasoner,
    TradeRequest,
)

# Scenario and configuration
from .scenario import Scenario, ActorSpec, ObjectSpec, build_world, default_scenario, load_scenario
from .config import Config, SimulationConfig, default_config
from .environment import IslandGrid, find_random_land_position, generate_island

# Core schemas
from .schemas import (
    Action,
    ActionKind,
    Actor,
    CastawayError,
    Event,
    EventType,
    GoalDecision,
    InsufficientResourcesError,
    InvalidTradeTransition,
    Invention,
    ObjectType,
    Position,
    Resource,
    Season,
    Trade,
    TradeDecision,
    TradeDecisionKind,
    TradeOffer,
    TradeStatus,
    WorldObject,
)

__all__ = [
    "Simulation",
    "SimulationSnapshot",
    "default_reasoner",
    "SimulationContext",
    "TickScheduler",
    "EventDispatcher",
    "EventQueue",
    "TradeProtocol",
    "InventionDiscovery",
    "RequestTracker",
    "action_duration",
    "gather_yield",
    "travel_time",
    "World",
    "EventLog",
    "LogEntry",
    "FallbackReasoner",
    "GoalRequest",
    "LLMReasoner",
    "Reasoner",
    "TradeRequest",
    "Scenario",
    "ActorSpec",
    "ObjectSpec",
    "build_world",
    "default_scenario",
    "load_scenario",
    "Config",
    "SimulationConfig",
    "default_config",
    "IslandGrid",
    "find_random_land_position",
    "generate_island",
    "Action",
    "ActionKind",
    "Actor",
    "CastawayError",
    "Event",
    "EventType",
    "GoalDecision",
    "InsufficientResourcesError",
    "InvalidTradeTransition",
    "Invention",
    "ObjectType",
    "Position",
    "Resource",
    "Season",
    "Trade",
    "TradeDecision",
    "TradeDecisionKind",
    "TradeOffer",
    "TradeStatus",
    "WorldObject",
]
