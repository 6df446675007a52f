"""
Slash commands for quick block creation.

Maps short ``/command`` strings (and their aliases) typed by the user to a
block type. Matching is case-insensitive and ignores surrounding whitespace.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..models import BlockTypeId
from .registry import TypeRegistry


@dataclass(frozen=True)
class SlashCommand:
    """
    A slash command and the block type it creates.
    """
    command: str
    block_type: BlockTypeId
    aliases: Tuple[str, ...] = ()

    def spellings(self) -> Tuple[str, ...]:
        return (self.command,) + self.aliases


@dataclass(frozen=True)
class CommandSuggestion:
    command: str
    block_type: BlockTypeId
    display_name: str
    description: str = ""


SLASH_COMMANDS: List[SlashCommand] = [
    # Personal blocks
    SlashCommand("/avatar", BlockTypeId.AVATAR, ("/photo", "/image", "/profile")),
    SlashCommand("/contact", BlockTypeId.CONTACT, ("/email", "/phone")),
    SlashCommand("/address", BlockTypeId.ADDRESS, ("/location",)),
    SlashCommand("/social", BlockTypeId.SOCIAL_NETWORKS, ("/networks", "/links")),

    # Professional blocks
    SlashCommand("/experience", BlockTypeId.EXPERIENCE, ("/work", "/job")),
    SlashCommand("/volunteer", BlockTypeId.VOLUNTEER, ("/community",)),
    SlashCommand("/education", BlockTypeId.EDUCATION, ("/school", "/degree")),
    SlashCommand("/project", BlockTypeId.PROJECT, ("/portfolio",)),

    # Achievement blocks
    SlashCommand("/award", BlockTypeId.AWARD, ("/honor", "/recognition")),
    SlashCommand("/certificate", BlockTypeId.CERTIFICATE, ("/certification", "/cert")),
    SlashCommand("/publication", BlockTypeId.PUBLICATION, ("/article", "/paper")),

    # Skills blocks
    SlashCommand("/skill", BlockTypeId.SKILL, ("/skills",)),
    SlashCommand("/language", BlockTypeId.NATURAL_LANGUAGE, ("/languages",)),

    # Other blocks
    SlashCommand("/interest", BlockTypeId.INTEREST, ("/interests", "/hobby")),
    SlashCommand("/reference", BlockTypeId.REFERENCE, ("/references",)),
]


def _build_index(commands: List[SlashCommand]) -> Dict[str, BlockTypeId]:
    index: Dict[str, BlockTypeId] = {}
    for cmd in commands:
        for spelling in cmd.spellings():
            if spelling in index and index[spelling] != cmd.block_type:
                raise ValueError(f"Slash command {spelling} maps to both {index[spelling]} and {cmd.block_type}")
            index[spelling] = cmd.block_type
    return index


_COMMAND_INDEX = _build_index(SLASH_COMMANDS)


def resolve_command(text: str, registry: Optional[TypeRegistry] = None) -> Optional[BlockTypeId]:
    """
    Resolve user input to a block type.

    Args:
        text: Raw user input, e.g. "/Work"
        registry: When given, types missing from it resolve to None

    Returns:
        The matching block type, or None when nothing matches
    """
    normalized = text.strip().lower()
    if not normalized.startswith("/"):
        return None

    block_type = _COMMAND_INDEX.get(normalized)
    if block_type is None:
        return None
    if registry is not None and not registry.has(block_type):
        return None
    return block_type


def suggest_commands(text: str, registry: TypeRegistry) -> List[CommandSuggestion]:
    """
    Suggest commands whose name or an alias contains the typed search term.

    Args:
        text: Partial input starting with "/"
        registry: Registry providing display metadata; unregistered types are skipped

    Returns:
        Suggestions in table order
    """
    normalized = text.strip().lower()
    if not normalized.startswith("/"):
        return []

    term = normalized[1:]
    suggestions = []
    for cmd in SLASH_COMMANDS:
        descriptor = registry.get(cmd.block_type)
        if descriptor is None:
            continue
        if any(term in spelling[1:] for spelling in cmd.spellings()):
            suggestions.append(CommandSuggestion(
                command=cmd.command,
                block_type=cmd.block_type,
                display_name=descriptor.display_name,
                description=descriptor.description
            ))
    return suggestions
