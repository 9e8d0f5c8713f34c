"""
Payload sanitization and per-entity validation.

Every entity exposes an allow-list of writable fields. Incoming keys are
accepted under either their stored (snake_case) name or their API
(camelCase) alias and translated to the stored name. Server-controlled
fields are stripped, anything else unrecognized is dropped.

Validators take an already-translated, already-trimmed field set and return
an ordered list of violations; an empty list means the payload is valid.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import structlog

from entraide_api.core.errors import ValidationFailed

logger = structlog.get_logger()

TEXT = "text"
INT = "int"
BOOL = "bool"
DAYS = "days"


@dataclass(frozen=True)
class FieldSpec:
    column: str
    kind: str = TEXT
    aliases: tuple[str, ...] = ()
    # Blank values become NULL instead of failing length checks
    nullable: bool = False


def _specs(*specs: FieldSpec) -> dict[str, FieldSpec]:
    return {s.column: s for s in specs}


ENTITY_FIELDS: dict[str, dict[str, FieldSpec]] = {
    "project": _specs(
        FieldSpec("location"),
        FieldSpec("min_person_req", INT, ("minPersonReq",)),
        FieldSpec("needs_transportation", BOOL, ("needsTransportation",)),
        FieldSpec("has_kids", BOOL, ("hasKids",)),
        FieldSpec("has_elderly", BOOL, ("hasElderly",)),
        FieldSpec("has_shelter", BOOL, ("hasShelter",)),
    ),
    "materiel": _specs(
        FieldSpec("name"),
        FieldSpec("location"),
    ),
    "outil": _specs(
        FieldSpec("name"),
        FieldSpec("location"),
        FieldSpec("available", BOOL),
    ),
    "transport": _specs(
        FieldSpec("name"),
        FieldSpec("location"),
        FieldSpec("contact_number", TEXT, ("contactNumber",), nullable=True),
        FieldSpec("max_duration", INT, ("maxDuration",), nullable=True),
    ),
    "user": _specs(
        FieldSpec("name", TEXT, ("nom",)),
        FieldSpec("phone", TEXT, ("numero",), nullable=True),
        FieldSpec("location", TEXT, (), nullable=True),
        FieldSpec("available_days", DAYS, ("availableDays",)),
    ),
}

# Never writable through a payload, whatever the entity
PROTECTED_FIELDS = frozenset({
    "id",
    "creator_id", "creatorId",
    "posted_by", "postedBy",
    "offered_by", "offeredBy",
    "user_id", "userId",
    "created_at", "createdAt",
    "updated_at", "updatedAt",
    "email",
    "status",
    "priority",
    "photo",
})

_TRUE_STRINGS = {"true", "1", "on", "yes"}
_FALSE_STRINGS = {"false", "0", "off", "no"}


def _alias_index(entity: str) -> dict[str, FieldSpec]:
    index: dict[str, FieldSpec] = {}
    for spec in ENTITY_FIELDS[entity].values():
        index[spec.column] = spec
        for alias in spec.aliases:
            index[alias] = spec
    return index


def translate_fields(entity: str, payload: Mapping[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Map API keys onto stored column names.

    Returns the translated fields and the keys that were not recognized.
    Protected keys are neither kept nor reported.
    """
    index = _alias_index(entity)
    fields: dict[str, Any] = {}
    dropped: list[str] = []
    for key, value in payload.items():
        spec = index.get(key)
        if spec is not None:
            fields[spec.column] = value
        elif key not in PROTECTED_FIELDS:
            dropped.append(key)
    return fields, dropped


def sanitize_update(entity: str, payload: Mapping[str, Any]) -> dict[str, Any]:
    """Allow-listed, translated update set for ``entity``."""
    stripped = sorted(k for k in payload if k in PROTECTED_FIELDS)
    fields, dropped = translate_fields(entity, payload)
    if stripped:
        logger.info("update.protected_fields_stripped", entity=entity, fields=stripped)
    if dropped:
        logger.info("update.unknown_fields_dropped", entity=entity, fields=sorted(dropped))
    return fields


def coerce_form_values(entity: str, fields: dict[str, Any]) -> dict[str, Any]:
    """Convert multipart string values to the int/bool the column expects.

    Values that do not parse are left untouched so validation reports them.
    """
    specs = ENTITY_FIELDS[entity]
    coerced = dict(fields)
    for column, value in fields.items():
        if not isinstance(value, str):
            continue
        spec = specs[column]
        raw = value.strip()
        if spec.kind == BOOL:
            if raw.lower() in _TRUE_STRINGS:
                coerced[column] = True
            elif raw.lower() in _FALSE_STRINGS:
                coerced[column] = False
        elif spec.kind == INT:
            if raw == "" and spec.nullable:
                coerced[column] = None
            else:
                try:
                    coerced[column] = int(raw)
                except ValueError:
                    pass
        elif spec.kind == DAYS:
            if raw.startswith("["):
                try:
                    coerced[column] = json.loads(raw)
                except ValueError:
                    pass
            else:
                coerced[column] = [d for d in (part.strip() for part in raw.split(",")) if d]
    return coerced


def normalize_fields(entity: str, fields: dict[str, Any]) -> dict[str, Any]:
    """Trim text, blank nullable text to None, de-duplicate available days."""
    specs = ENTITY_FIELDS[entity]
    normalized = dict(fields)
    for column, value in fields.items():
        spec = specs[column]
        if spec.kind == TEXT and isinstance(value, str):
            value = value.strip()
            if spec.nullable and value == "":
                value = None
            normalized[column] = value
        elif spec.kind == DAYS and isinstance(value, (list, tuple)):
            seen: list[str] = []
            for day in value:
                day = day.strip() if isinstance(day, str) else day
                if day not in seen:
                    seen.append(day)
            normalized[column] = seen
    return normalized


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def _long_enough(value: Any, minimum: int) -> bool:
    return isinstance(value, str) and len(value.strip()) >= minimum


def _positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def validate_project(fields: Mapping[str, Any], *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    if not partial or "location" in fields:
        if not _long_enough(fields.get("location"), 2):
            errors.append("Location is required and must be at least 2 characters")
    if not partial or "min_person_req" in fields:
        if not _positive_int(fields.get("min_person_req")):
            errors.append("Minimum person requirement must be a positive integer")
    for column, label in (
        ("needs_transportation", "needsTransportation"),
        ("has_kids", "hasKids"),
        ("has_elderly", "hasElderly"),
        ("has_shelter", "hasShelter"),
    ):
        if column in fields and not isinstance(fields[column], bool):
            errors.append(f"{label} must be a boolean")
    return errors


def _resource_validator(name_label: str, extra: Optional[Callable[[Mapping[str, Any]], list[str]]] = None):
    def validate(fields: Mapping[str, Any], *, partial: bool = False) -> list[str]:
        errors: list[str] = []
        if not partial or "name" in fields:
            if not _long_enough(fields.get("name"), 2):
                errors.append(f"{name_label} is required and must be at least 2 characters")
        if not partial or "location" in fields:
            if not _long_enough(fields.get("location"), 2):
                errors.append("Location is required and must be at least 2 characters")
        if extra is not None:
            errors.extend(extra(fields))
        return errors

    return validate


def _outil_extras(fields: Mapping[str, Any]) -> list[str]:
    if "available" in fields and not isinstance(fields["available"], bool):
        return ["available must be a boolean"]
    return []


def _transport_extras(fields: Mapping[str, Any]) -> list[str]:
    errors: list[str] = []
    contact = fields.get("contact_number")
    if contact is not None and not _long_enough(contact, 3):
        errors.append("Contact number must be at least 3 characters if provided")
    duration = fields.get("max_duration")
    if duration is not None and not _positive_int(duration):
        errors.append("Maximum duration must be a positive integer if provided")
    return errors


validate_materiel = _resource_validator("Material name")
validate_outil = _resource_validator("Tool name", _outil_extras)
validate_transport = _resource_validator("Transport name", _transport_extras)


def validate_user(fields: Mapping[str, Any], *, partial: bool = True) -> list[str]:
    errors: list[str] = []
    if not partial or "name" in fields:
        if not _long_enough(fields.get("name"), 2):
            errors.append("Name must be at least 2 characters")
    if fields.get("phone") is not None and not _long_enough(fields["phone"], 3):
        errors.append("Phone number must be at least 3 characters")
    if fields.get("location") is not None and not _long_enough(fields["location"], 2):
        errors.append("Location must be at least 2 characters")
    if "available_days" in fields:
        days = fields["available_days"]
        if not isinstance(days, (list, tuple)):
            errors.append("Available days must be an array")
        elif not all(isinstance(d, str) for d in days):
            errors.append("Available days must be a list of day labels")
    return errors


def validate_registration(email: Any, password: Any, fields: Mapping[str, Any]) -> list[str]:
    errors: list[str] = []
    if not isinstance(email, str) or "@" not in email:
        errors.append("Valid email is required")
    if not isinstance(password, str) or len(password) < 6:
        errors.append("Password must be at least 6 characters")
    errors.extend(validate_user(fields, partial=False))
    return errors


VALIDATORS: dict[str, Callable[..., list[str]]] = {
    "project": validate_project,
    "materiel": validate_materiel,
    "outil": validate_outil,
    "transport": validate_transport,
    "user": validate_user,
}


def validate_fields(entity: str, fields: Mapping[str, Any], *, partial: bool) -> list[str]:
    return VALIDATORS[entity](fields, partial=partial)


def prepare_fields(entity: str, fields: dict[str, Any], *, form: bool, partial: bool) -> dict[str, Any]:
    """Coerce (multipart only), trim and validate a translated field set."""
    if form:
        fields = coerce_form_values(entity, fields)
    fields = normalize_fields(entity, fields)
    violations = validate_fields(entity, fields, partial=partial)
    if violations:
        raise ValidationFailed(violations)
    return fields


def no_updates() -> ValidationFailed:
    return ValidationFailed(
        ["Provide at least one updatable field"],
        message="No valid fields to update",
        code="NO_UPDATES_PROVIDED",
    )
