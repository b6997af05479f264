# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for incident mutations.

This module contains pure functions deciding whether an actor may mutate an
incident. Admins may do everything; barangay users may edit or delete their
own incidents during a fixed window after creation, and maintain population
and infrastructure records on incidents they reported.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from models.entities import Incident, UserContext
from models.enums import IncidentAction, UserRole

logger = logging.getLogger(__name__)

# Measured from creation time; editing does not extend it.
EDIT_WINDOW = timedelta(hours=1)

ADMIN_ONLY_ACTIONS = frozenset({
    IncidentAction.STATUS_CHANGE,
    IncidentAction.ARCHIVE,
    IncidentAction.UNARCHIVE,
    IncidentAction.PURGE,
})

OWNER_WINDOW_ACTIONS = frozenset({
    IncidentAction.EDIT,
    IncidentAction.DELETE,
})

OWNER_ACTIONS = frozenset({
    IncidentAction.MODIFY_POPULATION_DATA,
    IncidentAction.MODIFY_INFRASTRUCTURE_STATUS,
})


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None


def is_admin(actor: Optional[UserContext]) -> bool:
    """Check if the actor holds the admin role."""
    return actor is not None and actor.has_role(UserRole.ADMIN)


def is_reporter(actor: Optional[UserContext], incident: Incident) -> bool:
    """Check if the actor filed the incident."""
    if actor is None or incident.reported_by is None:
        return False
    return actor.user_id == incident.reported_by


def is_within_edit_window(created_at: datetime, now: datetime) -> bool:
    """
    Check if an incident is still inside the barangay edit window.

    Args:
        created_at: Incident creation time
        now: Current time

    Returns:
        True if less than EDIT_WINDOW has elapsed since creation
    """
    return now - created_at < EDIT_WINDOW


def edit_window_remaining(created_at: datetime, now: datetime) -> timedelta:
    """Time left in the edit window, never negative."""
    remaining = created_at + EDIT_WINDOW - now
    return remaining if remaining > timedelta(0) else timedelta(0)


def check_incident_access(
    actor: Optional[UserContext],
    incident: Incident,
    action: IncidentAction,
    now: Optional[datetime] = None
) -> AuthorizationResult:
    """
    Check if an actor may perform an action on an incident.

    Args:
        actor: Actor performing the action
        incident: Target incident
        action: Action to perform
        now: Current time, defaults to utcnow

    Returns:
        AuthorizationResult with the denial reason when not allowed
    """
    if actor is None:
        return AuthorizationResult(allowed=False, reason="Authentication required")

    if incident is None:
        return AuthorizationResult(allowed=False, reason="Incident not found")

    try:
        action = IncidentAction(action)
    except ValueError:
        return AuthorizationResult(allowed=False, reason=f"Unknown action: {action}")

    if is_admin(actor):
        return AuthorizationResult(allowed=True)

    if not actor.has_role(UserRole.BARANGAY):
        return AuthorizationResult(allowed=False, reason=f"Unrecognized role: {actor.role}")

    if action in ADMIN_ONLY_ACTIONS:
        return AuthorizationResult(
            allowed=False,
            reason=f"Only administrators can perform '{action.value}'"
        )

    if not is_reporter(actor, incident):
        return AuthorizationResult(
            allowed=False,
            reason="You can only modify incidents you reported"
        )

    if action in OWNER_ACTIONS:
        return AuthorizationResult(allowed=True)

    if action in OWNER_WINDOW_ACTIONS:
        now = now or datetime.utcnow()
        if is_within_edit_window(incident.created_at, now):
            return AuthorizationResult(allowed=True)
        return AuthorizationResult(
            allowed=False,
            reason="You can only edit recently reported incidents (within 1 hour)"
        )

    return AuthorizationResult(allowed=False, reason=f"Action not permitted: {action.value}")


def can_mutate(
    actor: Optional[UserContext],
    incident: Incident,
    action: IncidentAction,
    now: Optional[datetime] = None
) -> bool:
    """
    Check if an actor may perform an action on an incident.

    Never raises: malformed actors or incidents are denied.

    Args:
        actor: Actor performing the action
        incident: Target incident
        action: Action to perform
        now: Current time, defaults to utcnow

    Returns:
        True if the action is allowed
    """
    try:
        return check_incident_access(actor, incident, action, now).allowed
    except (AttributeError, TypeError, ValueError) as e:
        logger.warning(f"Denying {action} after authorization error: {e}")
        return False


def build_incident_permissions(
    actor: Optional[UserContext],
    incident: Incident,
    now: Optional[datetime] = None
) -> Dict[str, bool]:
    """
    Build the permission flags the client uses to show or hide actions.

    Args:
        actor: Actor viewing the incident
        incident: Incident being viewed
        now: Current time, defaults to utcnow

    Returns:
        Dictionary of can_* flags
    """
    now = now or datetime.utcnow()
    return {
        f"can_{action.value}": can_mutate(actor, incident, action, now)
        for action in IncidentAction
    }


def denied_actions(
    actor: Optional[UserContext],
    incident: Incident,
    now: Optional[datetime] = None
) -> List[str]:
    """List the actions the actor may not perform on the incident."""
    permissions = build_incident_permissions(actor, incident, now)
    return sorted(name[len("can_"):] for name, allowed in permissions.items() if not allowed)
