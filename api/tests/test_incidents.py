# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for incident workflow domain logic.
"""

from datetime import datetime, timedelta

import pytest

from domain.incidents import (
    IncidentFilters,
    active_incidents,
    apply_infrastructure_status,
    apply_population_data,
    archive_incident,
    archived_incidents,
    build_family_roster,
    change_incident_status,
    completeness_score,
    create_incident,
    estimate_archive_size_mb,
    filter_incidents,
    unarchive_incident,
    update_incident,
    validate_deletion,
    validate_family_roster,
    validate_incident_payload,
    validate_purge,
    validate_status_transition,
)
from models.entities import PopulationData, UserContext
from models.enums import IncidentStatus


class TestCreateIncident:
    """Test incident creation."""

    def test_create_with_roster(self, sample_incident_payload, barangay_user, now):
        result = create_incident(sample_incident_payload, barangay_user, now)

        assert result.success is True
        incident = result.incident
        assert incident.status == IncidentStatus.REPORTED
        assert incident.reported_by == barangay_user.user_id
        assert incident.reporter.barangay_name == "Poblacion"
        assert incident.affected_families == 2
        assert incident.affected_individuals == 4
        assert incident.created_at == now
        assert incident.families[0].incident_id == incident.id
        assert incident.families[0].members[0].family_id == incident.families[0].id

    def test_missing_fields(self, barangay_user):
        result = create_incident({"title": "Fire"}, barangay_user)

        assert result.success is False
        assert "Missing required field: location" in result.validation_errors
        assert "At least one family is required" in result.validation_errors

    def test_invalid_enums(self, sample_incident_payload, barangay_user):
        sample_incident_payload["incident_type"] = "Tsunami"
        sample_incident_payload["severity"] = "Extreme"

        result = create_incident(sample_incident_payload, barangay_user)

        assert result.success is False
        assert "Invalid incident type: Tsunami" in result.validation_errors
        assert "Invalid severity: Extreme" in result.validation_errors

    def test_invalid_member_reported(self, sample_incident_payload, barangay_user):
        sample_incident_payload["families"][0]["members"][0]["age"] = 130

        result = create_incident(sample_incident_payload, barangay_user)

        assert result.success is False
        assert result.error_message == "Invalid family roster"
        assert any("age" in error for error in result.validation_errors)

    def test_duplicate_family_numbers(self, sample_incident_payload, barangay_user):
        sample_incident_payload["families"][1]["family_number"] = 1

        result = create_incident(sample_incident_payload, barangay_user)

        assert result.success is False
        assert "Duplicate family number: 1" in result.validation_errors

    def test_unknown_role_denied(self, sample_incident_payload):
        result = create_incident(sample_incident_payload, UserContext(user_id="x", role="guest"))

        assert result.success is False
        assert result.access_denied is True


class TestFamilyRoster:
    """Test roster building and validation."""

    def test_fresh_identifiers(self, family_factory):
        original = family_factory(1, id="old-family")

        roster = build_family_roster([original], "incident-1")

        assert roster[0].id != "old-family"
        assert roster[0].incident_id == "incident-1"
        assert roster[0].members[0].family_id == roster[0].id

    def test_size_mismatch_is_warning(self, family_factory, member_factory):
        validation = validate_family_roster([family_factory(1, family_size=5, members=[member_factory()])])

        assert validation.is_valid is True
        assert validation.warnings == ["Family 1 declares 5 members but lists 1"]

    def test_family_without_members(self, family_factory):
        validation = validate_family_roster([family_factory(1, members=[], family_size=1)])

        assert validation.is_valid is False
        assert "Family 1 must have at least one member" in validation.errors

    def test_empty_roster(self):
        assert validate_family_roster([]).is_valid is False


class TestUpdateIncident:
    """Test incident updates and roster replacement."""

    def test_owner_updates_fields(self, barangay_user, incident_factory, now):
        incident = incident_factory(reporter=barangay_user, created_at=now - timedelta(minutes=30))

        result = update_incident(incident, {"title": "Updated title", "severity": "Critical"},
                                 barangay_user, now)

        assert result.success is True
        assert result.incident.title == "Updated title"
        assert result.incident.severity == "Critical"
        assert result.incident.updated_at == now
        assert incident.title == "Flash flood along the river"

    def test_roster_replaced_wholesale(self, barangay_user, incident_factory, family_factory,
                                       sample_incident_payload, now):
        incident = incident_factory(
            reporter=barangay_user,
            created_at=now - timedelta(minutes=5),
            families=[family_factory(1), family_factory(2), family_factory(3)]
        )

        result = update_incident(incident, {"families": sample_incident_payload["families"][:1]},
                                 barangay_user, now)

        assert result.success is True
        assert len(result.incident.families) == 1
        assert result.incident.affected_families == 1
        assert result.incident.affected_individuals == 3

    def test_stale_incident_denied(self, barangay_user, incident_factory, now):
        incident = incident_factory(reporter=barangay_user, created_at=now - timedelta(hours=2))

        result = update_incident(incident, {"title": "Late edit"}, barangay_user, now)

        assert result.success is False
        assert result.access_denied is True

    def test_barangay_cannot_change_status_through_update(self, barangay_user, incident_factory, now):
        incident = incident_factory(reporter=barangay_user, created_at=now)

        result = update_incident(incident, {"status": "Resolved"}, barangay_user, now)

        assert result.access_denied is True

    def test_admin_status_through_update(self, admin_user, incident_factory, now):
        incident = incident_factory(created_at=now - timedelta(days=3))

        result = update_incident(incident, {"status": "Investigating", "admin_notes": "Team sent"},
                                 admin_user, now)

        assert result.success is True
        assert result.incident.status == IncidentStatus.INVESTIGATING
        assert result.incident.admin_notes == "Team sent"

    def test_blank_title_rejected(self, barangay_user, incident_factory, now):
        incident = incident_factory(reporter=barangay_user, created_at=now)

        result = update_incident(incident, {"title": "   "}, barangay_user, now)

        assert result.success is False
        assert result.validation_errors

    def test_archived_incident_not_editable(self, admin_user, incident_factory, now):
        incident = incident_factory()
        incident = archive_incident(incident, "Duplicate report", admin_user, now).incident

        result = update_incident(incident, {"title": "New"}, admin_user, now)

        assert result.success is False
        assert "unarchived" in result.error_message


class TestStatusTransitions:
    """Test the status workflow."""

    @pytest.mark.parametrize("current,new,valid", [
        ("Reported", "Investigating", True),
        ("Investigating", "Resolved", True),
        ("Reported", "Resolved", False),
        ("Resolved", "Reported", False),
        ("Reported", "Reported", False),
        ("Reported", "Archived", False),
        ("Archived", "Reported", False),
    ])
    def test_sequential_transitions(self, current, new, valid):
        assert validate_status_transition(current, new).is_valid is valid

    def test_force_allows_non_sequential(self):
        assert validate_status_transition("Resolved", "Reported", force=True).is_valid is True
        assert validate_status_transition("Reported", "Archived", force=True).is_valid is False

    def test_admin_changes_status(self, admin_user, incident_factory, now):
        incident = incident_factory()

        result = change_incident_status(incident, IncidentStatus.INVESTIGATING, admin_user,
                                        admin_notes="Assessing", now=now)

        assert result.success is True
        assert result.incident.status == IncidentStatus.INVESTIGATING
        assert result.incident.admin_notes == "Assessing"
        assert incident.status == IncidentStatus.REPORTED

    def test_barangay_denied(self, barangay_user, incident_factory, now):
        incident = incident_factory(reporter=barangay_user, created_at=now)

        result = change_incident_status(incident, IncidentStatus.INVESTIGATING, barangay_user, now=now)

        assert result.access_denied is True


class TestArchiveWorkflow:
    """Test archiving and unarchiving."""

    def test_archive(self, admin_user, incident_factory, now):
        incident = incident_factory(status="Investigating")

        result = archive_incident(incident, "  Duplicate report  ", admin_user, now)

        archived = result.incident
        assert result.success is True
        assert archived.status == IncidentStatus.ARCHIVED
        assert archived.archive_reason == "Duplicate report"
        assert archived.archived_by == admin_user.user_id
        assert archived.archived_at == now
        assert archived.status_before_archive == "Investigating"

    @pytest.mark.parametrize("reason", ["", "abc", "x" * 501])
    def test_reason_length(self, admin_user, incident_factory, now, reason):
        result = archive_incident(incident_factory(), reason, admin_user, now)

        assert result.success is False

    def test_archive_twice(self, admin_user, incident_factory, now):
        archived = archive_incident(incident_factory(), "Duplicate report", admin_user, now).incident

        result = archive_incident(archived, "Duplicate report", admin_user, now)

        assert "Incident is already archived" in result.validation_errors

    def test_unarchive_restores_previous_status(self, admin_user, incident_factory, now):
        archived = archive_incident(
            incident_factory(status="Resolved"), "Closed out", admin_user, now
        ).incident

        later = now + timedelta(days=1)
        result = unarchive_incident(archived, "Reopened by council", admin_user, now=later)

        restored = result.incident
        assert restored.status == IncidentStatus.RESOLVED
        assert restored.archive_reason is None
        assert restored.archived_by is None
        assert restored.archived_at is None
        assert len(restored.unarchive_history) == 1
        episode = restored.unarchive_history[0]
        assert episode.previous_status == "Archived"
        assert episode.new_status == "Resolved"
        assert episode.archived_by == admin_user.user_id
        assert episode.unarchived_by == admin_user.user_id
        assert episode.unarchived_at == later
        assert "--- UNARCHIVED ---" in restored.admin_notes
        assert result.archive_episode == episode

    def test_unarchive_to_chosen_status(self, admin_user, incident_factory, now):
        archived = archive_incident(incident_factory(), "Closed out", admin_user, now).incident

        result = unarchive_incident(archived, "Needs follow-up", admin_user,
                                    new_status=IncidentStatus.INVESTIGATING, now=now)

        assert result.incident.status == IncidentStatus.INVESTIGATING

    def test_unarchive_to_archived_rejected(self, admin_user, incident_factory, now):
        archived = archive_incident(incident_factory(), "Closed out", admin_user, now).incident

        result = unarchive_incident(archived, "Needs follow-up", admin_user,
                                    new_status="Archived", now=now)

        assert result.success is False

    def test_unarchive_active_incident(self, admin_user, incident_factory, now):
        result = unarchive_incident(incident_factory(), "Needs follow-up", admin_user, now=now)

        assert "Incident is not archived" in result.validation_errors

    def test_barangay_cannot_archive(self, barangay_user, incident_factory, now):
        incident = incident_factory(reporter=barangay_user, created_at=now)

        assert archive_incident(incident, "Duplicate report", barangay_user, now).access_denied is True


class TestDeletion:
    """Test deletion and purge rules."""

    def test_owner_retracts_within_window(self, barangay_user, incident_factory, now):
        incident = incident_factory(reporter=barangay_user, created_at=now - timedelta(minutes=20))

        assert validate_deletion(incident, barangay_user, now).is_valid is True

    def test_admin_deletes_archived_only(self, admin_user, incident_factory, now):
        incident = incident_factory()
        archived = archive_incident(incident, "Test data", admin_user, now).incident

        assert validate_deletion(incident, admin_user, now).is_valid is False
        assert validate_deletion(archived, admin_user, now).is_valid is True

    def test_purge_requires_archived(self, admin_user, incident_factory, now):
        active = incident_factory()
        archived = archive_incident(incident_factory(), "Test data", admin_user, now).incident

        assert validate_purge([archived], admin_user, now).is_valid is True
        validation = validate_purge([archived, active], admin_user, now)
        assert validation.is_valid is False
        assert f"Incident {active.id} is not archived" in validation.errors

    def test_purge_admin_only(self, barangay_user, admin_user, incident_factory, now):
        archived = archive_incident(incident_factory(reporter=barangay_user), "Test data",
                                    admin_user, now).incident

        assert validate_purge([archived], barangay_user, now).is_valid is False

    def test_purge_nothing(self, admin_user):
        assert validate_purge([], admin_user).is_valid is False


class TestReportingRecords:
    """Test population and infrastructure upserts."""

    def test_population_data_created(self, barangay_user, incident_factory, now):
        incident = incident_factory(reporter=barangay_user, created_at=now - timedelta(days=2))

        result = apply_population_data(incident, {"male_count": 4, "female_count": None}, barangay_user, now)

        assert result.success is True
        data = result.incident.population_data
        assert data.incident_id == incident.id
        assert data.male_count == 4
        assert data.female_count == 0
        assert data.created_at == now

    def test_population_data_updated_in_place(self, admin_user, incident_factory, now):
        incident = incident_factory(population_data={"male_count": 1})
        original = incident.population_data

        result = apply_population_data(incident, {"male_count": 9}, admin_user, now)

        assert result.incident.population_data.id == original.id
        assert result.incident.population_data.created_at == original.created_at
        assert result.incident.population_data.male_count == 9

    def test_population_data_warns_when_roster_exists(self, admin_user, incident_factory,
                                                      family_factory, now):
        incident = incident_factory(families=[family_factory()])

        result = apply_population_data(incident, {"male_count": 9}, admin_user, now)

        assert result.success is True
        assert result.warnings

    def test_negative_count_rejected(self, admin_user, incident_factory, now):
        result = apply_population_data(incident_factory(), {"male_count": -1}, admin_user, now)

        assert result.success is False

    def test_infrastructure_status(self, barangay_user, other_barangay_user, incident_factory, now):
        incident = incident_factory(reporter=barangay_user)
        payload = {"roads_bridges_status": "Not passable", "power_outage_time": ""}

        result = apply_infrastructure_status(incident, payload, barangay_user, now)
        denied = apply_infrastructure_status(incident, payload, other_barangay_user, now)

        assert result.incident.infrastructure_status.roads_bridges_status == "Not passable"
        assert result.incident.infrastructure_status.power_outage_time is None
        assert denied.access_denied is True


class TestListing:
    """Test filtering and listing helpers."""

    def test_archived_hidden_by_default(self, admin_user, incident_factory, now):
        active = incident_factory()
        archived = archive_incident(incident_factory(), "Old record", admin_user, now).incident

        assert filter_incidents([active, archived], IncidentFilters()) == [active]
        assert len(filter_incidents([active, archived], IncidentFilters(include_archived=True))) == 2
        assert filter_incidents([active, archived], IncidentFilters(status="Archived")) == [archived]

    def test_filter_criteria(self, incident_factory, now):
        flood = incident_factory(incident_type="Flood", severity="Low", barangay="Poblacion")
        fire = incident_factory(incident_type="Fire", severity="High", barangay="San Isidro",
                                title="House fire", created_at=now - timedelta(days=10))

        assert filter_incidents([flood, fire], IncidentFilters(incident_type="Fire")) == [fire]
        assert filter_incidents([flood, fire], IncidentFilters(severity="Low")) == [flood]
        assert filter_incidents([flood, fire], IncidentFilters(barangay="san isidro")) == [fire]
        assert filter_incidents([flood, fire], IncidentFilters(search_term="house")) == [fire]
        assert filter_incidents([flood, fire], IncidentFilters(date_from=now - timedelta(days=1))) == [flood]
        assert filter_incidents([flood, fire], IncidentFilters(incident_ids=[fire.id])) == [fire]

    def test_date_range_uses_report_time(self, incident_factory, now):
        """Test date bounds apply to when the incident was reported."""
        late_report = incident_factory(created_at=now, incident_date=now - timedelta(days=30))
        old_report = incident_factory(created_at=now - timedelta(days=30), incident_date=now)
        window = IncidentFilters(date_from=now - timedelta(days=7), date_to=now)

        assert filter_incidents([late_report, old_report], window) == [late_report]

    def test_active_and_archived_ordering(self, admin_user, incident_factory, now):
        older = incident_factory(created_at=now - timedelta(days=2))
        newer = incident_factory(created_at=now - timedelta(days=1))
        first_archived = archive_incident(incident_factory(), "Old record", admin_user, now).incident
        last_archived = archive_incident(incident_factory(), "Old record", admin_user,
                                         now + timedelta(hours=1)).incident

        everything = [older, first_archived, newer, last_archived]

        assert active_incidents(everything) == [newer, older]
        assert archived_incidents(everything) == [last_archived, first_archived]

    def test_completeness_score(self, incident_factory, infrastructure_status_factory):
        incident = incident_factory(population_data={"male_count": 1})
        assert completeness_score(incident_factory()) == 40
        assert completeness_score(incident) == 70
        incident.infrastructure_status = infrastructure_status_factory(incident.id)
        assert completeness_score(incident) == 100

    def test_estimate_archive_size(self, incident_factory, family_factory, member_factory):
        incident = incident_factory(
            population_data={"male_count": 1},
            families=[family_factory(1, members=[member_factory(), member_factory()])]
        )

        # 1 + 0.5 + 0.2 + 0.2 KB each
        assert estimate_archive_size_mb([incident] * 100) == 0.19
        assert estimate_archive_size_mb([]) == 0


class TestPayloadValidation:
    """Test raw payload validation."""

    def test_partial_payload(self):
        assert validate_incident_payload({"title": "Only title"}, partial=True).is_valid is True

    def test_long_title(self):
        result = validate_incident_payload({"title": "x" * 256}, partial=True)
        assert "Field 'title' cannot exceed 255 characters" in result.errors
