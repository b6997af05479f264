# SPDX-License-Identifier: Apache-2.0

"""
Incident domain logic for workflow management.

This module contains pure functions for incident creation, updates, status
transitions, archiving, roster replacement and listing. Functions return
WorkflowResult/ValidationResult objects instead of raising for business-rule
failures; persistence is left to the service layer.
"""

from typing import List, Dict, Any, Optional, Sequence
from dataclasses import dataclass
from datetime import datetime
from pydantic import ValidationError
from models.base import generate_object_id
from models.entities import (
    ACTIVE_STATUSES,
    ArchiveEpisode,
    Incident,
    IncidentFamily,
    InfrastructureStatus,
    PopulationData,
    Reporter,
    UserContext,
)
from models.enums import IncidentAction, IncidentSeverity, IncidentStatus, IncidentType, UserRole
from .authorization import check_incident_access, is_admin
from .population import roster_totals


REASON_MIN_LENGTH = 5
REASON_MAX_LENGTH = 500

# Top-level fields a reporter may change through an update.
UPDATABLE_FIELDS = (
    'incident_type',
    'title',
    'description',
    'location',
    'barangay',
    'purok',
    'incident_date',
    'severity',
    'response_actions',
)

REQUIRED_FIELDS = ('incident_type', 'title', 'location', 'barangay', 'incident_date', 'severity')

# Normal workflow; admins may bypass it among active statuses with force=True.
STATUS_TRANSITIONS = {
    IncidentStatus.REPORTED: [IncidentStatus.INVESTIGATING],
    IncidentStatus.INVESTIGATING: [IncidentStatus.RESOLVED],
    IncidentStatus.RESOLVED: [],
    IncidentStatus.ARCHIVED: [],  # Left only through unarchive
}


@dataclass
class IncidentFilters:
    """
    Filters for incident queries.

    date_from and date_to bound created_at, the same field analytics date
    ranges use.
    """
    status: Optional[IncidentStatus] = None
    severity: Optional[IncidentSeverity] = None
    incident_type: Optional[IncidentType] = None
    barangay: Optional[str] = None
    reported_by: Optional[str] = None
    incident_ids: Optional[List[str]] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    search_term: Optional[str] = None
    include_archived: bool = False


@dataclass
class ValidationResult:
    """Result of incident validation."""
    is_valid: bool
    errors: List[str]
    warnings: List[str] = None

    def __post_init__(self):
        if self.warnings is None:
            self.warnings = []


@dataclass
class WorkflowResult:
    """Result of incident workflow operation."""
    success: bool
    incident: Optional[Incident] = None
    error_message: Optional[str] = None
    validation_errors: List[str] = None
    warnings: List[str] = None
    access_denied: bool = False
    archive_episode: Optional[ArchiveEpisode] = None

    def __post_init__(self):
        if self.validation_errors is None:
            self.validation_errors = []
        if self.warnings is None:
            self.warnings = []


def _denied(reason: Optional[str]) -> WorkflowResult:
    return WorkflowResult(success=False, error_message=reason, access_denied=True)


def _validation_messages(error: ValueError) -> List[str]:
    """Flatten a pydantic ValidationError into 'field: message' strings."""
    if isinstance(error, ValidationError):
        return [
            f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}" if item['loc'] else item['msg']
            for item in error.errors()
        ]
    return [str(error)]


def validate_reason(reason: Optional[str], label: str) -> List[str]:
    """Check an archive or unarchive reason."""
    if not reason or not reason.strip():
        return [f"{label} reason is required"]
    length = len(reason.strip())
    if length < REASON_MIN_LENGTH:
        return [f"{label} reason must be at least {REASON_MIN_LENGTH} characters"]
    if length > REASON_MAX_LENGTH:
        return [f"{label} reason cannot exceed {REASON_MAX_LENGTH} characters"]
    return []


def validate_incident_payload(payload: Dict[str, Any], partial: bool = False) -> ValidationResult:
    """
    Validate incident payload structure.

    Args:
        payload: Raw incident payload
        partial: True for updates, where required fields may be omitted

    Returns:
        ValidationResult with validation status and errors
    """
    errors = []
    warnings = []

    if not partial:
        for name in REQUIRED_FIELDS:
            if name not in payload or payload[name] is None:
                errors.append(f"Missing required field: {name}")
            elif isinstance(payload[name], str) and not payload[name].strip():
                errors.append(f"Field '{name}' cannot be empty")

        if not payload.get('families'):
            errors.append("At least one family is required")

    if payload.get('incident_type') is not None:
        try:
            IncidentType(payload['incident_type'])
        except ValueError:
            errors.append(f"Invalid incident type: {payload['incident_type']}")

    if payload.get('severity') is not None:
        try:
            IncidentSeverity(payload['severity'])
        except ValueError:
            errors.append(f"Invalid severity: {payload['severity']}")

    for name in ('title', 'location', 'barangay', 'purok'):
        if payload.get(name) is not None and len(str(payload[name])) > 255:
            errors.append(f"Field '{name}' cannot exceed 255 characters")

    if 'families' in payload and payload['families'] is not None and not isinstance(payload['families'], list):
        errors.append("Families must be a list")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings
    )


def build_family_roster(raw_families: Sequence[Any], incident_id: str) -> List[IncidentFamily]:
    """
    Build a fresh family roster for an incident.

    Every family and member gets a new identifier; a roster is never patched,
    only replaced.

    Args:
        raw_families: Family payloads (dicts or IncidentFamily instances)
        incident_id: Owning incident ID

    Returns:
        List of IncidentFamily with members attached

    Raises:
        ValueError: If a family or member fails validation
    """
    families = []

    for raw in raw_families:
        data = raw.model_dump() if isinstance(raw, IncidentFamily) else dict(raw)
        family_id = generate_object_id()
        members = [
            {**(member.model_dump() if hasattr(member, 'model_dump') else dict(member)),
             'id': generate_object_id(),
             'family_id': family_id}
            for member in data.get('members') or []
        ]
        data.update({'id': family_id, 'incident_id': incident_id, 'members': members})
        families.append(IncidentFamily.model_validate(data))

    return families


def validate_family_roster(families: List[IncidentFamily]) -> ValidationResult:
    """
    Validate a family roster.

    Args:
        families: Roster to validate

    Returns:
        ValidationResult; a declared family size that differs from the
        member count is only a warning
    """
    errors = []
    warnings = []

    if not families:
        errors.append("At least one family is required")

    seen = set()
    for family in families:
        if family.family_number in seen:
            errors.append(f"Duplicate family number: {family.family_number}")
        seen.add(family.family_number)

        if not family.members:
            errors.append(f"Family {family.family_number} must have at least one member")
        elif family.family_size != len(family.members):
            warnings.append(
                f"Family {family.family_number} declares {family.family_size} members "
                f"but lists {len(family.members)}"
            )

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings
    )


def create_incident(
    payload: Dict[str, Any],
    user_context: UserContext,
    now: Optional[datetime] = None
) -> WorkflowResult:
    """
    Create a new incident together with its family roster.

    Args:
        payload: Incident fields plus a 'families' list
        user_context: Reporting actor
        now: Creation time, defaults to utcnow

    Returns:
        WorkflowResult with the new incident or errors
    """
    if user_context is None or not (is_admin(user_context) or user_context.has_role(UserRole.BARANGAY)):
        return _denied("Only barangay users and administrators can report incidents")

    validation = validate_incident_payload(payload)
    if not validation.is_valid:
        return WorkflowResult(
            success=False,
            error_message="Invalid payload",
            validation_errors=validation.errors
        )

    now = now or datetime.utcnow()
    incident_id = generate_object_id()

    try:
        families = build_family_roster(payload['families'], incident_id)
    except ValueError as e:
        return WorkflowResult(
            success=False,
            error_message="Invalid family roster",
            validation_errors=_validation_messages(e)
        )

    roster_validation = validate_family_roster(families)
    if not roster_validation.is_valid:
        return WorkflowResult(
            success=False,
            error_message="Invalid family roster",
            validation_errors=roster_validation.errors
        )

    affected_families, affected_individuals = roster_totals(families)

    try:
        incident = Incident(
            id=incident_id,
            reported_by=user_context.user_id,
            reporter=Reporter(
                id=user_context.user_id,
                name=user_context.name,
                email=user_context.email,
                role=user_context.role,
                barangay_name=user_context.barangay_name,
                municipality=user_context.municipality
            ),
            status=IncidentStatus.REPORTED,
            families=families,
            affected_families=affected_families,
            affected_individuals=affected_individuals,
            created_at=now,
            updated_at=now,
            **{name: payload[name] for name in UPDATABLE_FIELDS if payload.get(name) is not None}
        )
    except ValueError as e:
        return WorkflowResult(
            success=False,
            error_message="Invalid payload",
            validation_errors=_validation_messages(e)
        )

    return WorkflowResult(success=True, incident=incident, warnings=roster_validation.warnings)


def update_incident(
    incident: Incident,
    payload: Dict[str, Any],
    user_context: UserContext,
    now: Optional[datetime] = None
) -> WorkflowResult:
    """
    Update incident fields and, when given, replace its family roster.

    A 'status' key in the payload is applied as a status change and needs the
    corresponding permission. A 'families' key replaces the whole roster.

    Args:
        incident: Incident to update
        payload: Changed fields
        user_context: Acting user
        now: Current time, defaults to utcnow

    Returns:
        WorkflowResult with the updated incident or errors
    """
    now = now or datetime.utcnow()

    access = check_incident_access(user_context, incident, IncidentAction.EDIT, now)
    if not access.allowed:
        return _denied(access.reason)

    if incident.is_archived():
        return WorkflowResult(
            success=False,
            error_message="Archived incidents must be unarchived before editing"
        )

    validation = validate_incident_payload(payload, partial=True)
    if not validation.is_valid:
        return WorkflowResult(
            success=False,
            error_message="Invalid payload",
            validation_errors=validation.errors
        )

    new_status = payload.get('status')
    if new_status is not None and new_status != incident.status:
        status_access = check_incident_access(user_context, incident, IncidentAction.STATUS_CHANGE, now)
        if not status_access.allowed:
            return _denied(status_access.reason)
        transition = validate_status_transition(incident.status, new_status)
        if not transition.is_valid:
            return WorkflowResult(
                success=False,
                error_message="Invalid status transition",
                validation_errors=transition.errors
            )

    changes = {name: payload[name] for name in UPDATABLE_FIELDS if name in payload}
    warnings = []

    if payload.get('families') is not None:
        try:
            families = build_family_roster(payload['families'], incident.id)
        except ValueError as e:
            return WorkflowResult(
                success=False,
                error_message="Invalid family roster",
                validation_errors=_validation_messages(e)
            )

        roster_validation = validate_family_roster(families)
        if not roster_validation.is_valid:
            return WorkflowResult(
                success=False,
                error_message="Invalid family roster",
                validation_errors=roster_validation.errors
            )
        warnings = roster_validation.warnings
        changes['families'] = families
        changes['affected_families'], changes['affected_individuals'] = roster_totals(families)

    if new_status is not None:
        changes['status'] = IncidentStatus(new_status).value
        if 'admin_notes' in payload:
            changes['admin_notes'] = payload['admin_notes']

    changes['updated_at'] = now

    try:
        data = incident.model_dump()
        data.update({
            name: [family.model_dump() for family in value] if name == 'families' else value
            for name, value in changes.items()
        })
        updated_incident = Incident.model_validate(data)
    except ValueError as e:
        return WorkflowResult(
            success=False,
            error_message="Invalid payload",
            validation_errors=_validation_messages(e)
        )

    return WorkflowResult(success=True, incident=updated_incident, warnings=warnings)


def validate_status_transition(
    current_status: IncidentStatus,
    new_status: IncidentStatus,
    force: bool = False
) -> ValidationResult:
    """
    Validate incident status transition.

    Args:
        current_status: Current incident status
        new_status: Desired new status
        force: Allow a non-sequential move among active statuses

    Returns:
        ValidationResult with validation status and errors
    """
    errors = []

    try:
        current_status = IncidentStatus(current_status)
        new_status = IncidentStatus(new_status)
    except ValueError as e:
        return ValidationResult(is_valid=False, errors=[str(e)])

    if current_status == IncidentStatus.ARCHIVED:
        errors.append("Archived incidents must be unarchived before changing status")
    elif new_status == IncidentStatus.ARCHIVED:
        errors.append("Use archive to move an incident to Archived")
    elif new_status == current_status:
        errors.append(f"Incident is already {current_status.value}")
    elif force:
        if new_status not in ACTIVE_STATUSES:
            errors.append(f"Invalid status: {new_status.value}")
    elif new_status not in STATUS_TRANSITIONS.get(current_status, []):
        errors.append(
            f"Invalid status transition from {current_status.value} to {new_status.value}"
        )

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors
    )


def change_incident_status(
    incident: Incident,
    new_status: IncidentStatus,
    user_context: UserContext,
    admin_notes: Optional[str] = None,
    force: bool = False,
    now: Optional[datetime] = None
) -> WorkflowResult:
    """
    Move an incident along the status workflow.

    Args:
        incident: Incident to update
        new_status: Target status
        user_context: Acting user
        admin_notes: Optional notes replacing the current ones
        force: Allow a non-sequential move among active statuses
        now: Current time, defaults to utcnow

    Returns:
        WorkflowResult with updated incident or errors
    """
    now = now or datetime.utcnow()

    access = check_incident_access(user_context, incident, IncidentAction.STATUS_CHANGE, now)
    if not access.allowed:
        return _denied(access.reason)

    validation = validate_status_transition(incident.status, new_status, force)
    if not validation.is_valid:
        return WorkflowResult(
            success=False,
            error_message="Invalid status transition",
            validation_errors=validation.errors
        )

    updated_incident = incident.model_copy(deep=True)
    updated_incident.change_status(new_status, admin_notes, now)

    return WorkflowResult(success=True, incident=updated_incident)


def validate_archive_request(
    incident: Incident,
    reason: str,
    user_context: UserContext,
    now: Optional[datetime] = None
) -> ValidationResult:
    """
    Validate incident archive request.

    Args:
        incident: Incident to archive
        reason: Archive reason
        user_context: User context for permission checks
        now: Current time, defaults to utcnow

    Returns:
        ValidationResult with validation status and errors
    """
    errors = []

    access = check_incident_access(user_context, incident, IncidentAction.ARCHIVE, now)
    if not access.allowed:
        errors.append(access.reason)

    if incident.is_archived():
        errors.append("Incident is already archived")

    errors.extend(validate_reason(reason, "Archive"))

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors
    )


def archive_incident(
    incident: Incident,
    reason: str,
    user_context: UserContext,
    now: Optional[datetime] = None
) -> WorkflowResult:
    """
    Archive an incident with a reason.

    Args:
        incident: Incident to archive
        reason: Archive reason
        user_context: Acting administrator
        now: Current time, defaults to utcnow

    Returns:
        WorkflowResult with updated incident or errors
    """
    now = now or datetime.utcnow()

    access = check_incident_access(user_context, incident, IncidentAction.ARCHIVE, now)
    if not access.allowed:
        return _denied(access.reason)

    validation = validate_archive_request(incident, reason, user_context, now)
    if not validation.is_valid:
        return WorkflowResult(
            success=False,
            error_message="Archive validation failed",
            validation_errors=validation.errors
        )

    updated_incident = incident.model_copy(deep=True)
    updated_incident.archive(user_context.user_id, reason.strip(), now)

    return WorkflowResult(success=True, incident=updated_incident)


def validate_unarchive_request(
    incident: Incident,
    reason: str,
    user_context: UserContext,
    new_status: Optional[IncidentStatus] = None,
    now: Optional[datetime] = None
) -> ValidationResult:
    """
    Validate incident unarchive request.

    Args:
        incident: Incident to unarchive
        reason: Unarchive reason
        user_context: User context for permission checks
        new_status: Requested status, defaults to the status before archiving
        now: Current time, defaults to utcnow

    Returns:
        ValidationResult with validation status and errors
    """
    errors = []

    access = check_incident_access(user_context, incident, IncidentAction.UNARCHIVE, now)
    if not access.allowed:
        errors.append(access.reason)

    if not incident.is_archived():
        errors.append("Incident is not archived")

    if new_status is not None:
        try:
            if IncidentStatus(new_status) not in ACTIVE_STATUSES:
                errors.append(f"Cannot unarchive to status: {new_status}")
        except ValueError:
            errors.append(f"Invalid status: {new_status}")

    errors.extend(validate_reason(reason, "Unarchive"))

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors
    )


def unarchive_incident(
    incident: Incident,
    reason: str,
    user_context: UserContext,
    new_status: Optional[IncidentStatus] = None,
    now: Optional[datetime] = None
) -> WorkflowResult:
    """
    Restore an archived incident to an active status.

    The completed archive episode is appended to the incident's unarchive
    history and the archive fields are cleared.

    Args:
        incident: Incident to unarchive
        reason: Unarchive reason
        user_context: Acting administrator
        new_status: Target status, defaults to the status before archiving
        now: Current time, defaults to utcnow

    Returns:
        WorkflowResult with updated incident and the recorded episode
    """
    now = now or datetime.utcnow()

    access = check_incident_access(user_context, incident, IncidentAction.UNARCHIVE, now)
    if not access.allowed:
        return _denied(access.reason)

    validation = validate_unarchive_request(incident, reason, user_context, new_status, now)
    if not validation.is_valid:
        return WorkflowResult(
            success=False,
            error_message="Unarchive validation failed",
            validation_errors=validation.errors
        )

    updated_incident = incident.model_copy(deep=True)
    episode = updated_incident.unarchive(user_context.user_id, reason.strip(), new_status, now)

    return WorkflowResult(success=True, incident=updated_incident, archive_episode=episode)


def validate_deletion(
    incident: Incident,
    user_context: UserContext,
    now: Optional[datetime] = None
) -> ValidationResult:
    """
    Validate deletion of a single incident.

    Reporters may retract their own report during the edit window.
    Administrators may only delete archived incidents.

    Args:
        incident: Incident to delete
        user_context: Acting user
        now: Current time, defaults to utcnow

    Returns:
        ValidationResult with validation status and errors
    """
    errors = []

    access = check_incident_access(user_context, incident, IncidentAction.DELETE, now)
    if not access.allowed:
        errors.append(access.reason)
    elif is_admin(user_context) and not incident.is_archived():
        errors.append("Only archived incidents can be permanently deleted")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors
    )


def validate_purge(
    incidents: List[Incident],
    user_context: UserContext,
    now: Optional[datetime] = None
) -> ValidationResult:
    """
    Validate permanent deletion of archived incidents.

    Args:
        incidents: Incidents to purge
        user_context: Acting administrator
        now: Current time, defaults to utcnow

    Returns:
        ValidationResult with validation status and errors
    """
    errors = []

    if not incidents:
        errors.append("No incidents selected")

    for incident in incidents:
        access = check_incident_access(user_context, incident, IncidentAction.PURGE, now)
        if not access.allowed:
            errors.append(access.reason)
            break
        if not incident.is_archived():
            errors.append(f"Incident {incident.id} is not archived")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors
    )


def apply_population_data(
    incident: Incident,
    payload: Dict[str, Any],
    user_context: UserContext,
    now: Optional[datetime] = None
) -> WorkflowResult:
    """
    Create or update the population summary of an incident.

    An existing summary keeps its identifier and creation time.

    Args:
        incident: Owning incident
        payload: Population counts
        user_context: Acting user
        now: Current time, defaults to utcnow

    Returns:
        WorkflowResult with the incident carrying the new summary
    """
    now = now or datetime.utcnow()

    access = check_incident_access(user_context, incident, IncidentAction.MODIFY_POPULATION_DATA, now)
    if not access.allowed:
        return _denied(access.reason)

    existing = incident.population_data
    data = {name: value for name, value in payload.items() if name in PopulationData.model_fields}
    data.update({
        'id': existing.id if existing else generate_object_id(),
        'incident_id': incident.id,
        'created_at': existing.created_at if existing else now,
        'updated_at': now,
    })

    try:
        population_data = PopulationData.model_validate(data)
    except ValueError as e:
        return WorkflowResult(
            success=False,
            error_message="Invalid population data",
            validation_errors=_validation_messages(e)
        )

    updated_incident = incident.model_copy(deep=True)
    updated_incident.population_data = population_data

    warnings = []
    if incident.families:
        warnings.append("Incident has a family roster; the population summary is not used for statistics")

    return WorkflowResult(success=True, incident=updated_incident, warnings=warnings)


def apply_infrastructure_status(
    incident: Incident,
    payload: Dict[str, Any],
    user_context: UserContext,
    now: Optional[datetime] = None
) -> WorkflowResult:
    """
    Create or update the infrastructure status of an incident.

    Args:
        incident: Owning incident
        payload: Infrastructure fields
        user_context: Acting user
        now: Current time, defaults to utcnow

    Returns:
        WorkflowResult with the incident carrying the new status record
    """
    now = now or datetime.utcnow()

    access = check_incident_access(user_context, incident, IncidentAction.MODIFY_INFRASTRUCTURE_STATUS, now)
    if not access.allowed:
        return _denied(access.reason)

    existing = incident.infrastructure_status
    data = {name: value for name, value in payload.items() if name in InfrastructureStatus.model_fields}
    data.update({
        'id': existing.id if existing else generate_object_id(),
        'incident_id': incident.id,
        'created_at': existing.created_at if existing else now,
        'updated_at': now,
    })

    try:
        infrastructure_status = InfrastructureStatus.model_validate(data)
    except ValueError as e:
        return WorkflowResult(
            success=False,
            error_message="Invalid infrastructure status",
            validation_errors=_validation_messages(e)
        )

    updated_incident = incident.model_copy(deep=True)
    updated_incident.infrastructure_status = infrastructure_status

    return WorkflowResult(success=True, incident=updated_incident)


def filter_incidents(
    incidents: List[Incident],
    filters: IncidentFilters
) -> List[Incident]:
    """
    Filter incidents based on criteria.

    Args:
        incidents: List of incidents to filter
        filters: Filter criteria

    Returns:
        Filtered list of incidents
    """
    filtered = incidents

    # Archived incidents are hidden unless requested or filtered for
    if filters.status is not None:
        status = IncidentStatus(filters.status)
        filtered = [i for i in filtered if i.status == status]
    elif not filters.include_archived:
        filtered = [i for i in filtered if not i.is_archived()]

    if filters.severity is not None:
        severity = IncidentSeverity(filters.severity)
        filtered = [i for i in filtered if i.severity == severity]

    if filters.incident_type is not None:
        incident_type = IncidentType(filters.incident_type)
        filtered = [i for i in filtered if i.incident_type == incident_type]

    if filters.barangay:
        barangay_lower = filters.barangay.strip().lower()
        filtered = [i for i in filtered if (i.barangay or '').strip().lower() == barangay_lower]

    if filters.reported_by:
        filtered = [i for i in filtered if i.reported_by == filters.reported_by]

    if filters.incident_ids:
        filtered = [i for i in filtered if i.id in filters.incident_ids]

    if filters.date_from:
        filtered = [i for i in filtered if i.created_at >= filters.date_from]

    if filters.date_to:
        filtered = [i for i in filtered if i.created_at <= filters.date_to]

    if filters.search_term and filters.search_term.strip():
        search_lower = filters.search_term.strip().lower()
        filtered = [
            i for i in filtered
            if search_lower in i.title.lower()
            or search_lower in (i.description or '').lower()
            or search_lower in i.location.lower()
        ]

    return filtered


def active_incidents(incidents: List[Incident]) -> List[Incident]:
    """Incidents that are not archived, newest first."""
    return sorted(
        (incident for incident in incidents if not incident.is_archived()),
        key=lambda incident: incident.created_at,
        reverse=True
    )


def archived_incidents(incidents: List[Incident]) -> List[Incident]:
    """Archived incidents, most recently archived first."""
    return sorted(
        (incident for incident in incidents if incident.is_archived()),
        key=lambda incident: incident.archived_at,
        reverse=True
    )


def completeness_score(incident: Incident) -> int:
    """
    Score how complete an incident's reporting data is.

    Args:
        incident: Incident to score

    Returns:
        40 for the incident itself, plus 30 each for population data and
        infrastructure status
    """
    score = 40
    if incident.has_population_data():
        score += 30
    if incident.has_infrastructure_status():
        score += 30
    return score


def estimate_archive_size_mb(incidents: List[Incident]) -> float:
    """
    Rough storage estimate of a set of incidents, in megabytes.

    Args:
        incidents: Incidents to estimate

    Returns:
        Estimated size rounded to two decimals
    """
    size_kb = 0.0

    for incident in incidents:
        size_kb += 1
        if incident.has_population_data():
            size_kb += 0.5
        if incident.has_infrastructure_status():
            size_kb += 0.5
        size_kb += 0.2 * len(incident.families)
        size_kb += 0.1 * sum(len(family.members) for family in incident.families)

    return round(size_kb / 1024, 2)
