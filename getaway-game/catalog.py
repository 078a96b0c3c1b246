"""Static game content: NPC templates, action zones, keyword rules and map constants."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class NpcTemplate:
    npc_id: str
    name: str
    location: str
    system_prompt: str


@dataclass(frozen=True)
class ActionZone:
    action_id: str
    required_item: str
    winning: bool
    message: str


@dataclass(frozen=True)
class GrantRule:
    """Grant ``item`` when every group in ``all_of`` has at least one phrase in the reply."""

    npc_id: str
    item: str
    all_of: tuple[tuple[str, ...], ...]

    def matches(self, reply: str) -> bool:
        lowered = reply.lower()
        return all(any(phrase in lowered for phrase in group) for group in self.all_of)


NPC_TEMPLATES: MappingProxyType[str, NpcTemplate] = MappingProxyType(
    {
        "hardwareClerk": NpcTemplate(
            npc_id="hardwareClerk",
            name="Hardware Store Clerk",
            location="Hardware Store",
            system_prompt=(
                "You are a friendly but slightly paranoid hardware store clerk. You have a shovel in stock, "
                "but you're suspicious of people who want to buy it late at night. You gossip with the police "
                "officer sometimes. You remember conversations and get more suspicious if people's stories "
                "don't match. You can be convinced to sell the shovel if given a good reason. Keep responses "
                "under 100 words."
            ),
        ),
        "policeOfficer": NpcTemplate(
            npc_id="policeOfficer",
            name="Police Officer",
            location="Police Station",
            system_prompt=(
                "You are a strict but somewhat gullible police officer at the station. You have helicopter "
                "keys but would NEVER give them to civilians under normal circumstances. However, you can be "
                "tricked with a convincing emergency story. You know the hardware store clerk and border "
                "guard. You've heard rumors about a bank robbery today. You remember all conversations. Keep "
                "responses under 100 words."
            ),
        ),
        "borderGuard": NpcTemplate(
            npc_id="borderGuard",
            name="Border Guard",
            location="Border Checkpoint",
            system_prompt=(
                "You are a stern border guard who takes your job VERY seriously. You've been alerted about a "
                "bank robbery and are on high alert. You check papers carefully and won't let anyone through "
                "without proper documentation or an extremely convincing story. You communicate with the "
                "police station. You remember everyone you talk to. Keep responses under 100 words."
            ),
        ),
        "exitGuard": NpcTemplate(
            npc_id="exitGuard",
            name="Exit Guard",
            location="Exit Checkpoint",
            system_prompt=(
                "You are a border guard at the exit checkpoint. You take security very seriously and have "
                "been warned about the bank robbery. You won't let anyone through without a borderPass or a "
                "very convincing story. You are in contact with the main border patrol. Keep responses under "
                "100 words."
            ),
        ),
    }
)

ACTION_ZONES: MappingProxyType[str, ActionZone] = MappingProxyType(
    {
        "digSite": ActionZone(
            action_id="digSite",
            required_item="shovel",
            winning=True,
            message="You dug a tunnel and found the escape route! You win!",
        ),
        "helicopterPad": ActionZone(
            action_id="helicopterPad",
            required_item="helicopterKeys",
            winning=True,
            message="You started the helicopter and escaped! You win!",
        ),
        "borderExit": ActionZone(
            action_id="borderExit",
            required_item="borderPass",
            winning=True,
            message="You crossed the border successfully! You win!",
        ),
    }
)

WINNING_ACTIONS = frozenset(zone.action_id for zone in ACTION_ZONES.values() if zone.winning)

GRANT_RULES: tuple[GrantRule, ...] = (
    GrantRule(npc_id="hardwareClerk", item="shovel", all_of=(("here",), ("shovel",))),
    GrantRule(npc_id="policeOfficer", item="helicopterKeys", all_of=(("key",), ("take", "here"))),
    GrantRule(
        npc_id="borderGuard",
        item="borderPass",
        all_of=(("go ahead", "pass through", "cleared", "approved"),),
    ),
)

CHASE_NPCS = frozenset({"policeOfficer", "borderGuard", "exitGuard"})
CHASE_PHRASES = ("arrest", "hands up", "caught")

FALLBACK_REPLY = "Sorry, I seem to be having trouble understanding you right now."
EMPTY_REPLY = "I... uh... what?"

# World geometry, in map pixels.
MAP_WIDTH = 5760
MAP_HEIGHT = 5760
TILE_SIZE = 48
BODY_WIDTH = 32
BODY_HEIGHT = 64

HOST_SPAWN = (2882.0, 3112.0)
GUEST_SPAWN = (2882.0, 3200.0)
PURSUIT_SPAWN = (4106.0, 4306.0)
# (dx, dy, speed per tick) for each pursuit unit.
PURSUIT_ROSTER = (
    (0.0, 0.0, 28.0),
    (-64.0, 48.0, 34.0),
    (64.0, 96.0, 40.0),
)
CATCH_RADIUS = 40.0


def chase_triggered(npc_id: str, reply: str) -> bool:
    if npc_id not in CHASE_NPCS:
        return False
    lowered = reply.lower()
    return any(phrase in lowered for phrase in CHASE_PHRASES)
