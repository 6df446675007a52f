"""
Type descriptors and validation rules.

A ``TypeDescriptor`` bundles everything the rest of the system needs to know
about one block type: how it is displayed, how many instances a document may
hold, what a fresh payload looks like, and how a payload is validated.
Validation is pure: it never performs I/O.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from pydantic import HttpUrl, TypeAdapter, ValidationError

from ..models import BlockCategory, BlockTypeId
from ..models.payloads import PayloadModel


Rule = Callable[[PayloadModel], List[str]]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_HTTP_URL = TypeAdapter(HttpUrl)


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of validating a payload.

    ``errors`` is empty when ``ok`` is true, otherwise an ordered list of
    human-readable messages, each prefixed with the offending field.
    """
    ok: bool
    errors: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, errors: Sequence[str]) -> "ValidationResult":
        return cls(ok=False, errors=list(errors))


def _alias(model: PayloadModel, attr: str) -> str:
    info = type(model).model_fields.get(attr)
    if info is not None and info.alias:
        return info.alias
    return attr


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def required(attr: str, label: str) -> Rule:
    """The field must be present and non-blank."""
    def rule(model: PayloadModel) -> List[str]:
        if _is_blank(getattr(model, attr)):
            return [f"{_alias(model, attr)}: {label} is required"]
        return []
    return rule


def at_least_one(attrs: Sequence[str], message: str) -> Rule:
    """At least one of the fields must be non-blank."""
    def rule(model: PayloadModel) -> List[str]:
        if all(_is_blank(getattr(model, attr)) for attr in attrs):
            names = "/".join(_alias(model, attr) for attr in attrs)
            return [f"{names}: {message}"]
        return []
    return rule


def non_empty_list(attr: str, message: str) -> Rule:
    """The list field must contain at least one non-blank item."""
    def rule(model: PayloadModel) -> List[str]:
        items = [item for item in getattr(model, attr) if not _is_blank(item)]
        if not items:
            return [f"{_alias(model, attr)}: {message}"]
        return []
    return rule


def email_format(attr: str) -> Rule:
    """When filled in, the field must look like an email address."""
    def rule(model: PayloadModel) -> List[str]:
        value = getattr(model, attr)
        if not _is_blank(value) and not _EMAIL_RE.match(value.strip()):
            return [f"{_alias(model, attr)}: Invalid email address"]
        return []
    return rule


def url_format(attr: str) -> Rule:
    """When filled in, the field must be an http(s) URL with a host."""
    def rule(model: PayloadModel) -> List[str]:
        value = getattr(model, attr)
        if _is_blank(value):
            return []
        try:
            _HTTP_URL.validate_python(value.strip())
        except ValidationError:
            return [f"{_alias(model, attr)}: Invalid URL"]
        return []
    return rule


def each_item(attr: str, rules: Sequence[Rule]) -> Rule:
    """Apply ``rules`` to every nested model in a list field, indexing the field names."""
    def rule(model: PayloadModel) -> List[str]:
        errors = []
        prefix = _alias(model, attr)
        for index, item in enumerate(getattr(model, attr)):
            for item_rule in rules:
                errors.extend(f"{prefix}[{index}].{error}" for error in item_rule(item))
        return errors
    return rule


def _format_structure_errors(exc: ValidationError) -> List[str]:
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "payload"
        errors.append(f"{location}: {error.get('msg', 'Invalid value')}")
    return errors


@dataclass(frozen=True)
class TypeDescriptor:
    """
    Metadata and behavior for one block type.
    """
    id: BlockTypeId
    display_name: str
    description: str
    category: BlockCategory
    payload_model: Type[PayloadModel]
    default_factory: Callable[[], Dict[str, Any]]
    rules: Tuple[Rule, ...] = ()
    max_instances: Optional[int] = None
    default_is_complete: bool = False

    def __post_init__(self):
        if self.max_instances is not None and self.max_instances < 1:
            raise ValueError(f"max_instances for {self.id} must be a positive integer, got {self.max_instances}")

    @property
    def supports_multiple(self) -> bool:
        return self.max_instances is None or self.max_instances > 1

    def create_default(self) -> Dict[str, Any]:
        """Return a fresh default payload for this type."""
        return self.default_factory()

    def check_structure(self, payload: Any) -> ValidationResult:
        """
        Check only the payload's shape: field types, enumerations and bounds.

        Args:
            payload: The payload to check

        Returns:
            The structural validation result
        """
        try:
            self.payload_model.model_validate(payload)
        except ValidationError as exc:
            return ValidationResult.failure(_format_structure_errors(exc))
        return ValidationResult.success()

    def validate(self, payload: Any) -> ValidationResult:
        """
        Validate a payload against this type's structure and rules.

        Structural errors are reported alone, since the rules need a
        well-formed payload to inspect.

        Args:
            payload: The payload to validate

        Returns:
            Success, or a failure listing every field error in order
        """
        try:
            model = self.payload_model.model_validate(payload)
        except ValidationError as exc:
            return ValidationResult.failure(_format_structure_errors(exc))

        errors: List[str] = []
        for rule in self.rules:
            errors.extend(rule(model))

        if errors:
            return ValidationResult.failure(errors)
        return ValidationResult.success()
