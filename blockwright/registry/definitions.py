"""
Built-in block type definitions.

Every member of ``BlockTypeId`` is described here: display metadata,
multiplicity, default payload and validation rules. ``build_default_registry``
turns the table into a ready ``TypeRegistry`` in one synchronous step.
"""

import logging
from typing import List

from ..errors import ConfigurationError
from ..models import BlockCategory, BlockTypeId
from ..models import payloads
from .descriptor import (
    TypeDescriptor,
    at_least_one,
    each_item,
    email_format,
    non_empty_list,
    required,
    url_format,
)
from .registry import TypeRegistry


def _address_location(model: payloads.AddressPayload) -> List[str]:
    # Remote positions need no location
    if model.is_remote or model.city.strip() or model.country.strip():
        return []
    return ["city/country: Either a city or country is required unless the position is remote"]


DEFAULT_DESCRIPTORS: List[TypeDescriptor] = [
    # Personal blocks
    TypeDescriptor(
        id=BlockTypeId.AVATAR,
        display_name="Avatar",
        description="Profile image or avatar",
        category=BlockCategory.PERSONAL,
        payload_model=payloads.AvatarPayload,
        default_factory=lambda: {"imageUrl": "", "altText": ""},
        rules=(url_format("image_url"),),
        max_instances=1,
        default_is_complete=True,
    ),
    TypeDescriptor(
        id=BlockTypeId.CONTACT,
        display_name="Contact",
        description="Email, phone, and website",
        category=BlockCategory.PERSONAL,
        payload_model=payloads.ContactPayload,
        default_factory=lambda: {"email": "", "phone": "", "website": ""},
        rules=(
            at_least_one(("email", "phone", "website"), "At least one contact method is required"),
            email_format("email"),
            url_format("website"),
        ),
        max_instances=1,
    ),
    TypeDescriptor(
        id=BlockTypeId.ADDRESS,
        display_name="Address",
        description="Location or remote work status",
        category=BlockCategory.PERSONAL,
        payload_model=payloads.AddressPayload,
        default_factory=lambda: {
            "street": "",
            "city": "",
            "state": "",
            "country": "",
            "postalCode": "",
            "isRemote": False,
        },
        rules=(_address_location,),
        max_instances=1,
    ),
    TypeDescriptor(
        id=BlockTypeId.SOCIAL_NETWORKS,
        display_name="Social Networks",
        description="Social media profiles",
        category=BlockCategory.PERSONAL,
        payload_model=payloads.SocialNetworksPayload,
        default_factory=lambda: {"networks": []},
        rules=(
            non_empty_list("networks", "At least one social network is required"),
            each_item("networks", (
                required("platform", "Platform"),
                required("url", "URL"),
                url_format("url"),
            )),
        ),
    ),

    # Professional blocks
    TypeDescriptor(
        id=BlockTypeId.EXPERIENCE,
        display_name="Experience",
        description="Work experience and employment history",
        category=BlockCategory.PROFESSIONAL,
        payload_model=payloads.ExperiencePayload,
        default_factory=lambda: {
            "company": "",
            "position": "",
            "location": "",
            "startDate": "",
            "endDate": "",
            "current": False,
            "description": "",
            "highlights": [],
        },
        rules=(
            required("company", "Company"),
            required("position", "Position"),
            required("start_date", "Start date"),
        ),
    ),
    TypeDescriptor(
        id=BlockTypeId.VOLUNTEER,
        display_name="Volunteer",
        description="Volunteer work and community service",
        category=BlockCategory.PROFESSIONAL,
        payload_model=payloads.VolunteerPayload,
        default_factory=lambda: {
            "organization": "",
            "position": "",
            "location": "",
            "startDate": "",
            "endDate": "",
            "current": False,
            "description": "",
            "highlights": [],
        },
        rules=(
            required("organization", "Organization"),
            required("position", "Position"),
            required("start_date", "Start date"),
        ),
    ),
    TypeDescriptor(
        id=BlockTypeId.EDUCATION,
        display_name="Education",
        description="Academic background and degrees",
        category=BlockCategory.PROFESSIONAL,
        payload_model=payloads.EducationPayload,
        default_factory=lambda: {
            "institution": "",
            "degree": "",
            "field": "",
            "location": "",
            "graduationDate": "",
            "gpa": "",
            "honors": [],
            "coursework": [],
        },
        rules=(
            required("institution", "Institution"),
            required("degree", "Degree"),
            required("graduation_date", "Graduation date"),
        ),
    ),
    TypeDescriptor(
        id=BlockTypeId.PROJECT,
        display_name="Project",
        description="Portfolio projects and case studies",
        category=BlockCategory.PROFESSIONAL,
        payload_model=payloads.ProjectPayload,
        default_factory=lambda: {
            "name": "",
            "description": "",
            "url": "",
            "startDate": "",
            "endDate": "",
            "technologies": [],
            "highlights": [],
        },
        rules=(
            required("name", "Project name"),
            required("description", "Description"),
            url_format("url"),
        ),
    ),

    # Achievement blocks
    TypeDescriptor(
        id=BlockTypeId.AWARD,
        display_name="Award",
        description="Professional recognition and honors",
        category=BlockCategory.ACHIEVEMENTS,
        payload_model=payloads.AwardPayload,
        default_factory=lambda: {"title": "", "awarder": "", "date": "", "description": ""},
        rules=(
            required("title", "Title"),
            required("awarder", "Awarder"),
            required("date", "Date"),
        ),
    ),
    TypeDescriptor(
        id=BlockTypeId.CERTIFICATE,
        display_name="Certificate",
        description="Professional certifications",
        category=BlockCategory.ACHIEVEMENTS,
        payload_model=payloads.CertificatePayload,
        default_factory=lambda: {
            "name": "",
            "authority": "",
            "licenseNumber": "",
            "issuedAt": "",
            "expiresAt": "",
            "url": "",
        },
        rules=(
            required("name", "Certificate name"),
            required("authority", "Authority"),
            required("issued_at", "Issue date"),
            url_format("url"),
        ),
    ),
    TypeDescriptor(
        id=BlockTypeId.PUBLICATION,
        display_name="Publication",
        description="Published works and articles",
        category=BlockCategory.ACHIEVEMENTS,
        payload_model=payloads.PublicationPayload,
        default_factory=lambda: {
            "title": "",
            "publisher": "",
            "publicationDate": "",
            "url": "",
            "authors": [],
            "description": "",
        },
        rules=(
            required("title", "Title"),
            required("publisher", "Publisher"),
            required("publication_date", "Publication date"),
            url_format("url"),
        ),
    ),

    # Skills blocks
    TypeDescriptor(
        id=BlockTypeId.SKILL,
        display_name="Skill",
        description="Technical and professional skills",
        category=BlockCategory.SKILLS,
        payload_model=payloads.SkillPayload,
        default_factory=lambda: {
            "name": "",
            "category": "",
            "proficiency": "intermediate",
            "yearsOfExperience": 0,
        },
        rules=(
            required("name", "Skill name"),
            required("category", "Category"),
        ),
    ),
    TypeDescriptor(
        id=BlockTypeId.NATURAL_LANGUAGE,
        display_name="Language",
        description="Language fluencies",
        category=BlockCategory.SKILLS,
        payload_model=payloads.NaturalLanguagePayload,
        default_factory=lambda: {"language": "", "fluency": "conversational"},
        rules=(
            required("language", "Language"),
            required("fluency", "Fluency"),
        ),
    ),

    # Other blocks
    TypeDescriptor(
        id=BlockTypeId.INTEREST,
        display_name="Interest",
        description="Personal interests and hobbies",
        category=BlockCategory.OTHER,
        payload_model=payloads.InterestPayload,
        default_factory=lambda: {"interests": []},
        rules=(non_empty_list("interests", "At least one interest is required"),),
    ),
    TypeDescriptor(
        id=BlockTypeId.REFERENCE,
        display_name="Reference",
        description="Professional references",
        category=BlockCategory.OTHER,
        payload_model=payloads.ReferencePayload,
        default_factory=lambda: {
            "name": "",
            "title": "",
            "company": "",
            "email": "",
            "phone": "",
            "relationship": "",
        },
        rules=(
            required("name", "Name"),
            required("title", "Title"),
            required("company", "Company"),
            email_format("email"),
        ),
    ),
]


def build_default_registry() -> TypeRegistry:
    """
    Build a registry holding every built-in block type.

    Returns:
        A fully populated TypeRegistry

    Raises:
        ConfigurationError: If the built-in table does not cover every BlockTypeId
    """
    registry = TypeRegistry(DEFAULT_DESCRIPTORS)
    check = registry.all_registered(BlockTypeId)
    if not check.ok:
        missing = ", ".join(str(type_id) for type_id in check.missing)
        raise ConfigurationError(f"Block types missing from the registry: {missing}", check.missing)

    logging.info(f"Registered {len(registry)} block types")
    return registry
