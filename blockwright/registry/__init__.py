"""Block type registry, descriptors and slash commands."""

from .descriptor import TypeDescriptor, ValidationResult
from .registry import TypeRegistry, RegistrationCheck
from .definitions import DEFAULT_DESCRIPTORS, build_default_registry
from .slash_commands import SLASH_COMMANDS, SlashCommand, resolve_command, suggest_commands

__all__ = [
    "TypeDescriptor",
    "ValidationResult",
    "TypeRegistry",
    "RegistrationCheck",
    "DEFAULT_DESCRIPTORS",
    "build_default_registry",
    "SLASH_COMMANDS",
    "SlashCommand",
    "resolve_command",
    "suggest_commands"
]
