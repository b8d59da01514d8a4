"""Prompt templates for the reasoning collaborator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass
class PromptTemplate:
    """Represents a templated prompt with ``{{placeholder}}`` slots."""

    name: str
    system: str
    user: str
    description: str = ""


class PromptLibrary:
    """Container for named prompt templates."""

    def __init__(self) -> None:
        self.templates: Dict[str, PromptTemplate] = {}

    def register(self, template: PromptTemplate) -> None:
        self.templates[template.name] = template

    def get(self, name: str) -> PromptTemplate:
        return self.templates[name]


DEFAULT_PROMPTS = PromptLibrary()

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="goal",
        system=(
            "You are {{name}}, a castaway on a remote island. Your objective is to survive and "
            "improve your situation. It is currently {{time}} ({{season}})."
        ),
        user=(
            "Your status:\n"
            "- Vitals: Energy={{energy}}/{{max_energy}}, Hunger={{hunger}}/{{max_hunger}} (higher hunger means better fed)\n"
            "- Inventory: {{inventory}}\n"
            "- Tools: {{tools}}\n"
            "- Productivity: {{productivity}}\n"
            "- Inventions you own: {{owned_inventions}}\n"
            "{{pending_trade}}\n"
            "Long-term memory:\n"
            "- Housing: {{housing}}\n"
            "- Tools: {{tool_status}}\n"
            "- Last trade: {{last_trade}}\n\n"
            "Recent memory (newest first):\n{{short_term_memory}}\n\n"
            "The island:\n"
            "- Other castaways: {{peers}}\n"
            "- Nearby sources: {{sources}}\n"
            "- Costs: Shelter ({{shelter_wood}} Wood, {{shelter_stone}} Stone), Axe ({{axe_wood}} Wood, {{axe_stone}} Stone)\n"
            "- Inventions you could build:\n{{available_inventions}}\n\n"
            "{{critical_alert}}"
            "Decide your next goal and a short plan of actions.\n"
            "- Plans may have several steps, e.g. GATHER Wood then GATHER Stone then BUILD_SHELTER.\n"
            "- GATHER needs a resource and the total amount to collect.\n"
            "- If you are better at gathering something than your neighbour, gather it and trade for what you need.\n"
            "- If you owe resources for an agreed trade, gather what is missing and then TRADE_FINALIZE.\n"
            "- Do not repeat actions that just failed.\n\n"
            "Actions:\n"
            "- GATHER (resource, amount)\n"
            "- BUILD_SHELTER\n"
            "- CRAFT_AXE\n"
            "- BUILD_INVENTION (invention_id)\n"
            "- CONSUME (resource: Coconut or Fish)\n"
            "- SLEEP\n"
            "- TRADE_INITIATE (target_character_id, give_resource, give_amount, take_resource, take_amount)\n"
            "- TRADE_FINALIZE (deliver a trade you agreed to)\n"
            "- IDLE\n\n"
            "Respond with JSON containing goal, reasoning, plan and memory_entry."
        ),
        description="Chooses a goal and plan for an idle castaway.",
    )
)

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="trade",
        system=(
            "You are {{name}}, a castaway deciding whether to accept a trade from {{partner}}. "
            "Think like an economist: weigh comparative advantage and your own survival."
        ),
        user=(
            "Offer (turn {{turn}} of {{max_turns}}): {{partner}} gives you {{give}} and wants {{take}} in return.\n\n"
            "Your status: Energy={{energy}}, Hunger={{hunger}}, Inventory={{inventory}}\n"
            "Your productivity: {{productivity}}\n"
            "{{partner}}'s productivity: {{partner_productivity}}\n\n"
            "Negotiation so far:\n{{history}}\n\n"
            "Decide one of:\n"
            "- accept: you have what is asked and the deal helps you\n"
            "- accept_and_gather: the deal is good but you must first gather what is asked\n"
            "- reject: the deal is not worth it\n"
            "- counter: propose different terms in counter_offer (what YOU give and take){{counter_hint}}\n\n"
            "Respond with JSON containing decision, reasoning and, when countering, counter_offer. "
            "Show brief calculations in the reasoning where they matter."
        ),
        description="Responds to a trade offer.",
    )
)

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="invention_spec",
        system=(
            "You design primitive technology for a castaway survival simulation. "
            "Inventions must be plausible with wood and stone."
        ),
        user=(
            "Generic concept: {{category}}\n\n"
            "Turn it into one specific, balanced invention with a name, description, cost and effect.\n"
            "- Cost: use only Wood and Stone, in modest amounts.\n"
            "- Effect, exactly one of:\n"
            "  - PRODUCTIVITY_BOOST (resource, multiplier): 1.2 means 20% faster gathering\n"
            "  - STAT_DECAY_MODIFIER (stat hunger|energy, multiplier): 0.9 means 10% slower decay\n"
            "  - GATHER_YIELD_BONUS (resource, bonus): 1 means one extra unit per gather\n"
            "- Useful but not overpowered.\n\n"
            "Respond with JSON only."
        ),
        description="Specifies an invention for a generic category.",
    )
)

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="invention_icon",
        system="You draw small, single-colour SVG icons.",
        user=(
            "Invention: {{invention_name}}\n"
            "Description: {{invention_description}}\n\n"
            "Return JSON with an 'svg' field holding one <path> element with fill=\"currentColor\" "
            "for a 0 0 24 24 viewBox. No other XML."
        ),
        description="Draws an icon for a new invention.",
    )
)
