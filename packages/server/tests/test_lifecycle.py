"""
Unit tests for the project lifecycle and priority derivation.

Tests cover:
- Allowed and rejected status transitions
- Completed as a terminal state
- Priority derived from the situation flags
- Status parsing
"""

from __future__ import annotations

import pytest

from entraide_api.core.errors import ValidationFailed
from entraide_api.services.projects import derive_priority, parse_status
from entraide_shared.schemas.common import ProjectPriority, ProjectStatus
from entraide_shared.schemas.projects import validate_transition


class TestLifecycleStateMachine:
    """Test the validate_transition function directly."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (ProjectStatus.OPEN, ProjectStatus.IN_PROGRESS),
            (ProjectStatus.OPEN, ProjectStatus.COMPLETED),
            (ProjectStatus.IN_PROGRESS, ProjectStatus.OPEN),
            (ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETED),
        ],
    )
    def test_allowed_moves(self, current, target):
        valid, msg = validate_transition(current, target)
        assert valid, msg
        assert msg == ""

    def test_same_status_rejected(self):
        valid, msg = validate_transition(ProjectStatus.OPEN, ProjectStatus.OPEN)
        assert not valid
        assert "already open" in msg

    def test_completed_is_terminal(self):
        for target in (ProjectStatus.OPEN, ProjectStatus.IN_PROGRESS):
            valid, msg = validate_transition(ProjectStatus.COMPLETED, target)
            assert not valid
            assert "can no longer change" in msg


class TestDerivePriority:
    def test_no_shelter_is_high(self):
        assert derive_priority(False, False, False, False) == ProjectPriority.HIGH

    def test_kids_and_elderly_is_high(self):
        assert derive_priority(False, True, True, True) == ProjectPriority.HIGH

    @pytest.mark.parametrize(
        "flags",
        [(True, False, False, True), (False, True, False, True), (False, False, True, True)],
    )
    def test_single_vulnerability_is_medium(self, flags):
        assert derive_priority(*flags) == ProjectPriority.MEDIUM

    def test_defaults_are_low(self):
        assert derive_priority(False, False, False, True) == ProjectPriority.LOW


class TestParseStatus:
    def test_known_values(self):
        assert parse_status("in_progress") is ProjectStatus.IN_PROGRESS

    def test_unknown_value(self):
        with pytest.raises(ValidationFailed) as exc_info:
            parse_status("archived")
        assert exc_info.value.violations == ["Status must be: open, in_progress, or completed"]

    def test_missing_value(self):
        with pytest.raises(ValidationFailed):
            parse_status(None)
