# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the incident access policy.
"""

from datetime import timedelta

import pytest

from domain.authorization import (
    EDIT_WINDOW,
    build_incident_permissions,
    can_mutate,
    check_incident_access,
    denied_actions,
    edit_window_remaining,
    is_within_edit_window,
)
from models.entities import UserContext
from models.enums import IncidentAction


class TestEditWindow:
    """Test the creation-time edit window."""

    def test_window_is_one_hour(self):
        assert EDIT_WINDOW == timedelta(hours=1)

    @pytest.mark.parametrize("minutes,expected", [
        (0, True),
        (59, True),
        (60, False),
        (61, False),
    ])
    def test_window_boundary(self, now, minutes, expected):
        assert is_within_edit_window(now - timedelta(minutes=minutes), now) is expected

    def test_remaining_never_negative(self, now):
        assert edit_window_remaining(now - timedelta(minutes=45), now) == timedelta(minutes=15)
        assert edit_window_remaining(now - timedelta(hours=3), now) == timedelta(0)


class TestBarangayAccess:
    """Test barangay actor permissions."""

    def test_owner_may_edit_within_window(self, barangay_user, incident_factory, now):
        incident = incident_factory(reporter=barangay_user, created_at=now - timedelta(minutes=59))

        assert can_mutate(barangay_user, incident, IncidentAction.EDIT, now) is True
        assert can_mutate(barangay_user, incident, IncidentAction.DELETE, now) is True

    def test_owner_may_not_edit_after_window(self, barangay_user, incident_factory, now):
        incident = incident_factory(reporter=barangay_user, created_at=now - timedelta(minutes=61))

        assert can_mutate(barangay_user, incident, IncidentAction.EDIT, now) is False
        result = check_incident_access(barangay_user, incident, IncidentAction.EDIT, now)
        assert "within 1 hour" in result.reason

    def test_window_measured_from_creation(self, barangay_user, incident_factory, now):
        """Test a recent update does not extend the window."""
        incident = incident_factory(
            reporter=barangay_user,
            created_at=now - timedelta(hours=2),
            updated_at=now - timedelta(minutes=1)
        )

        assert can_mutate(barangay_user, incident, IncidentAction.EDIT, now) is False

    def test_non_owner_never_edits(self, barangay_user, other_barangay_user, incident_factory, now):
        incident = incident_factory(reporter=other_barangay_user, created_at=now)

        assert can_mutate(barangay_user, incident, IncidentAction.EDIT, now) is False
        assert can_mutate(barangay_user, incident, IncidentAction.MODIFY_POPULATION_DATA, now) is False

    @pytest.mark.parametrize("action", [
        IncidentAction.STATUS_CHANGE,
        IncidentAction.ARCHIVE,
        IncidentAction.UNARCHIVE,
        IncidentAction.PURGE,
    ])
    def test_admin_only_actions_denied(self, barangay_user, incident_factory, now, action):
        incident = incident_factory(reporter=barangay_user, created_at=now)

        assert can_mutate(barangay_user, incident, action, now) is False

    @pytest.mark.parametrize("action", [
        IncidentAction.MODIFY_POPULATION_DATA,
        IncidentAction.MODIFY_INFRASTRUCTURE_STATUS,
    ])
    def test_owner_maintains_reporting_data_without_window(self, barangay_user, incident_factory,
                                                           now, action):
        incident = incident_factory(reporter=barangay_user, created_at=now - timedelta(days=30))

        assert can_mutate(barangay_user, incident, action, now) is True


class TestAdminAccess:
    """Test administrator permissions."""

    @pytest.mark.parametrize("action", list(IncidentAction))
    def test_admin_allowed_regardless_of_age(self, admin_user, barangay_user, incident_factory,
                                             now, action):
        incident = incident_factory(reporter=barangay_user, created_at=now - timedelta(days=365))

        assert can_mutate(admin_user, incident, action, now) is True


class TestFailClosed:
    """Test denial of unknown actors, roles and actions."""

    def test_null_actor(self, incident_factory, now):
        assert can_mutate(None, incident_factory(), IncidentAction.EDIT, now) is False

    def test_unknown_role(self, incident_factory, now):
        actor = UserContext(user_id="u1", role="superuser")
        incident = incident_factory(reported_by="u1")

        assert can_mutate(actor, incident, IncidentAction.EDIT, now) is False

    def test_unknown_action(self, admin_user, incident_factory, now):
        assert can_mutate(admin_user, incident_factory(), "teleport", now) is False

    def test_malformed_actor_does_not_raise(self, incident_factory, now):
        assert can_mutate(object(), incident_factory(), IncidentAction.EDIT, now) is False

    def test_missing_incident(self, admin_user, barangay_user, now):
        assert can_mutate(admin_user, None, IncidentAction.ARCHIVE, now) is False
        assert can_mutate(barangay_user, None, IncidentAction.EDIT, now) is False
        result = check_incident_access(admin_user, None, IncidentAction.ARCHIVE, now)
        assert result.reason == "Incident not found"


class TestPermissionFlags:
    """Test permission flags for display layers."""

    def test_owner_flags(self, barangay_user, incident_factory, now):
        incident = incident_factory(reporter=barangay_user, created_at=now - timedelta(minutes=10))

        permissions = build_incident_permissions(barangay_user, incident, now)

        assert permissions["can_edit"] is True
        assert permissions["can_delete"] is True
        assert permissions["can_archive"] is False
        assert permissions["can_status_change"] is False
        assert permissions["can_modify_population_data"] is True
        assert set(permissions) == {f"can_{action.value}" for action in IncidentAction}

    def test_denied_actions(self, barangay_user, incident_factory, now):
        incident = incident_factory(reporter=barangay_user, created_at=now - timedelta(hours=2))

        assert denied_actions(barangay_user, incident, now) == [
            "archive", "delete", "edit", "purge", "status_change", "unarchive"
        ]
