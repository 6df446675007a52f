"""
Block type identifiers and display categories.

The set of block types is closed: every member of ``BlockTypeId`` must have a
descriptor in the default registry table.
"""

from enum import Enum


class BlockTypeId(str, Enum):
    """Stable identifiers of every block type a document can contain."""

    AVATAR = "avatar"
    CONTACT = "contact"
    ADDRESS = "address"
    SOCIAL_NETWORKS = "social_networks"
    EXPERIENCE = "experience"
    VOLUNTEER = "volunteer"
    EDUCATION = "education"
    AWARD = "award"
    CERTIFICATE = "certificate"
    PUBLICATION = "publication"
    SKILL = "skill"
    NATURAL_LANGUAGE = "natural_language"
    INTEREST = "interest"
    REFERENCE = "reference"
    PROJECT = "project"

    def __str__(self) -> str:
        return self.value


class BlockCategory(str, Enum):
    """Display grouping used by block pickers."""

    PERSONAL = "personal"
    PROFESSIONAL = "professional"
    ACHIEVEMENTS = "achievements"
    SKILLS = "skills"
    OTHER = "other"

    def __str__(self) -> str:
        return self.value
