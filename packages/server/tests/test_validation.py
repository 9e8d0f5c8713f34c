"""
Unit tests for payload sanitization and per-entity validation.

Tests cover:
- Alias translation and protected-field stripping
- Multipart value coercion
- Trimming and blank-to-null normalization
- One rule per validator message
"""

from __future__ import annotations

import pytest

from entraide_api.core.errors import ValidationFailed
from entraide_api.services.validation import (
    coerce_form_values,
    no_updates,
    normalize_fields,
    prepare_fields,
    sanitize_update,
    translate_fields,
    validate_materiel,
    validate_outil,
    validate_project,
    validate_registration,
    validate_transport,
    validate_user,
)


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------


class TestTranslateFields:
    def test_camel_case_aliases_map_to_columns(self):
        fields, dropped = translate_fields(
            "project", {"minPersonReq": 3, "hasKids": True, "location": "Quebec"}
        )
        assert fields == {"min_person_req": 3, "has_kids": True, "location": "Quebec"}
        assert dropped == []

    def test_snake_case_names_are_accepted(self):
        fields, _ = translate_fields("transport", {"contact_number": "555", "max_duration": 4})
        assert fields == {"contact_number": "555", "max_duration": 4}

    def test_unknown_keys_reported_protected_keys_silent(self):
        fields, dropped = translate_fields("materiel", {"name": "Rope", "colour": "red", "postedBy": "x"})
        assert fields == {"name": "Rope"}
        assert dropped == ["colour"]

    def test_user_french_aliases(self):
        fields, _ = translate_fields("user", {"nom": "Zoé", "numero": "514-555-0100"})
        assert fields == {"name": "Zoé", "phone": "514-555-0100"}


class TestSanitizeUpdate:
    def test_strips_server_controlled_fields(self):
        fields = sanitize_update(
            "project",
            {"id": 9, "creatorId": "abc", "status": "completed", "priority": "high", "location": "Gatineau"},
        )
        assert fields == {"location": "Gatineau"}

    def test_email_is_never_writable_on_user(self):
        assert sanitize_update("user", {"email": "new@example.com"}) == {}

    def test_photo_is_not_a_payload_field(self):
        assert sanitize_update("outil", {"photo": "http://evil"}) == {}


# ---------------------------------------------------------------------------
# Coercion and normalization
# ---------------------------------------------------------------------------


class TestCoerceFormValues:
    def test_bool_and_int_strings(self):
        coerced = coerce_form_values(
            "project", {"has_kids": "true", "has_shelter": "0", "min_person_req": " 4 "}
        )
        assert coerced == {"has_kids": True, "has_shelter": False, "min_person_req": 4}

    def test_unparseable_values_left_for_validation(self):
        coerced = coerce_form_values("project", {"has_kids": "maybe", "min_person_req": "many"})
        assert coerced == {"has_kids": "maybe", "min_person_req": "many"}

    def test_blank_nullable_int_becomes_none(self):
        assert coerce_form_values("transport", {"max_duration": ""}) == {"max_duration": None}

    def test_days_from_comma_list_and_json(self):
        assert coerce_form_values("user", {"available_days": "lundi, mardi"}) == {
            "available_days": ["lundi", "mardi"]
        }
        assert coerce_form_values("user", {"available_days": '["samedi"]'}) == {
            "available_days": ["samedi"]
        }


class TestNormalizeFields:
    def test_text_is_trimmed(self):
        assert normalize_fields("materiel", {"name": "  Drill  "}) == {"name": "Drill"}

    def test_blank_nullable_text_becomes_none(self):
        assert normalize_fields("transport", {"contact_number": "   "}) == {"contact_number": None}

    def test_days_deduplicated_in_order(self):
        fields = normalize_fields("user", {"available_days": ["lundi", " mardi", "lundi"]})
        assert fields == {"available_days": ["lundi", "mardi"]}


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


class TestValidateProject:
    def test_valid_create(self):
        assert validate_project({"location": "Montreal", "min_person_req": 1}) == []

    def test_missing_location(self):
        assert validate_project({"min_person_req": 1}) == [
            "Location is required and must be at least 2 characters"
        ]

    def test_zero_people_rejected(self):
        assert validate_project({"location": "Montreal", "min_person_req": 0}) == [
            "Minimum person requirement must be a positive integer"
        ]

    def test_bool_is_not_an_integer(self):
        assert validate_project({"location": "Montreal", "min_person_req": True}) == [
            "Minimum person requirement must be a positive integer"
        ]

    def test_flag_must_be_boolean(self):
        errors = validate_project({"location": "Montreal", "min_person_req": 1, "has_kids": "yes"})
        assert errors == ["hasKids must be a boolean"]

    def test_partial_only_checks_present_fields(self):
        assert validate_project({"has_elderly": True}, partial=True) == []
        assert validate_project({"location": "X"}, partial=True) == [
            "Location is required and must be at least 2 characters"
        ]


class TestValidateResources:
    def test_materiel_name_too_short(self):
        assert validate_materiel({"name": "D", "location": "Laval"}) == [
            "Material name is required and must be at least 2 characters"
        ]

    def test_outil_name_label(self):
        assert validate_outil({"location": "Laval"}) == [
            "Tool name is required and must be at least 2 characters"
        ]

    def test_outil_available_must_be_boolean(self):
        assert validate_outil({"name": "Saw", "location": "Laval", "available": "no"}) == [
            "available must be a boolean"
        ]

    def test_transport_optional_extras(self):
        assert validate_transport({"name": "Van", "location": "Laval"}) == []
        assert validate_transport(
            {"name": "Van", "location": "Laval", "contact_number": "12", "max_duration": 0}
        ) == [
            "Contact number must be at least 3 characters if provided",
            "Maximum duration must be a positive integer if provided",
        ]


class TestValidateUser:
    def test_short_name(self):
        assert validate_user({"name": "A"}) == ["Name must be at least 2 characters"]

    def test_null_phone_allowed(self):
        assert validate_user({"phone": None}) == []

    def test_days_must_be_a_list(self):
        assert validate_user({"available_days": "lundi"}) == ["Available days must be an array"]

    def test_registration_collects_every_violation(self):
        errors = validate_registration("not-an-email", "123", {})
        assert errors == [
            "Valid email is required",
            "Password must be at least 6 characters",
            "Name must be at least 2 characters",
        ]


class TestPrepareFields:
    def test_raises_with_violations(self):
        with pytest.raises(ValidationFailed) as exc_info:
            prepare_fields("materiel", {"name": " D ", "location": "Laval"}, form=False, partial=False)
        assert exc_info.value.status_code == 400
        assert exc_info.value.violations == ["Material name is required and must be at least 2 characters"]

    def test_form_values_are_coerced_before_validation(self):
        fields = prepare_fields(
            "project", {"location": "Montreal", "min_person_req": "3", "has_kids": "on"}, form=True, partial=False
        )
        assert fields == {"location": "Montreal", "min_person_req": 3, "has_kids": True}

    def test_json_strings_are_not_coerced(self):
        with pytest.raises(ValidationFailed):
            prepare_fields("project", {"location": "Montreal", "min_person_req": "3"}, form=False, partial=False)

    def test_no_updates_error(self):
        err = no_updates()
        assert err.code == "NO_UPDATES_PROVIDED"
        assert err.message == "No valid fields to update"
