"""
Payload models for every block type.

These models describe the *structure* of a payload: field types, enumerated
values and numeric bounds. Whether a payload is complete enough to show on a
resume (required fields filled in) is decided by each type's rules in
``blockwright.registry.definitions``.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


Proficiency = Literal["beginner", "intermediate", "advanced", "expert"]
Fluency = Literal["elementary", "conversational", "professional", "native"]


class PayloadModel(BaseModel):
    """Base for payload models: camelCase keys on the wire, unknown keys ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AvatarPayload(PayloadModel):
    image_url: str = Field("", alias="imageUrl")
    alt_text: str = Field("", alias="altText")


class ContactPayload(PayloadModel):
    email: str = ""
    phone: str = ""
    website: str = ""


class AddressPayload(PayloadModel):
    street: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    postal_code: str = Field("", alias="postalCode")
    is_remote: bool = Field(False, alias="isRemote")


class SocialNetwork(PayloadModel):
    platform: str = ""
    url: str = ""
    username: str = ""


class SocialNetworksPayload(PayloadModel):
    networks: List[SocialNetwork] = Field(default_factory=list)


class ExperiencePayload(PayloadModel):
    company: str = ""
    position: str = ""
    location: str = ""
    start_date: str = Field("", alias="startDate")
    end_date: str = Field("", alias="endDate")
    current: bool = False
    description: str = ""
    highlights: List[str] = Field(default_factory=list)


class VolunteerPayload(PayloadModel):
    organization: str = ""
    position: str = ""
    location: str = ""
    start_date: str = Field("", alias="startDate")
    end_date: str = Field("", alias="endDate")
    current: bool = False
    description: str = ""
    highlights: List[str] = Field(default_factory=list)


class EducationPayload(PayloadModel):
    institution: str = ""
    degree: str = ""
    field: str = ""
    location: str = ""
    graduation_date: str = Field("", alias="graduationDate")
    gpa: str = ""
    honors: List[str] = Field(default_factory=list)
    coursework: List[str] = Field(default_factory=list)


class AwardPayload(PayloadModel):
    title: str = ""
    awarder: str = ""
    date: str = ""
    description: str = ""


class CertificatePayload(PayloadModel):
    name: str = ""
    authority: str = ""
    license_number: str = Field("", alias="licenseNumber")
    issued_at: str = Field("", alias="issuedAt")
    expires_at: str = Field("", alias="expiresAt")
    url: str = ""


class PublicationPayload(PayloadModel):
    title: str = ""
    publisher: str = ""
    publication_date: str = Field("", alias="publicationDate")
    url: str = ""
    authors: List[str] = Field(default_factory=list)
    description: str = ""


class SkillPayload(PayloadModel):
    name: str = ""
    category: str = ""
    proficiency: Optional[Proficiency] = "intermediate"
    years_of_experience: float = Field(0, ge=0, alias="yearsOfExperience")


class NaturalLanguagePayload(PayloadModel):
    language: str = ""
    fluency: Optional[Fluency] = "conversational"


class InterestPayload(PayloadModel):
    interests: List[str] = Field(default_factory=list)


class ReferencePayload(PayloadModel):
    name: str = ""
    title: str = ""
    company: str = ""
    email: str = ""
    phone: str = ""
    relationship: str = ""


class ProjectPayload(PayloadModel):
    name: str = ""
    description: str = ""
    url: str = ""
    start_date: str = Field("", alias="startDate")
    end_date: str = Field("", alias="endDate")
    technologies: List[str] = Field(default_factory=list)
    highlights: List[str] = Field(default_factory=list)
