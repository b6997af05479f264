# SPDX-License-Identifier: Apache-2.0

"""
Statistics rollups across incidents.

This module composes per-incident population metrics into barangay and
municipal summaries. Callers pass incidents already loaded with their
relations; nothing here queries storage.

Administrative rollups group incidents by the barangay on the reporter's
profile. The barangay typed on the incident itself is only used when a
barangay user filters their own submissions.
"""

import calendar
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from models.entities import Incident, UserContext
from models.enums import DateRangePreset, IncidentSeverity, IncidentStatus, UserRole
from .authorization import is_admin
from .population import (
    IncidentMetrics,
    PopulationSourceKind,
    calculate_assistance_coverage,
    combine_metrics,
    compute_incident_metrics,
)

logger = logging.getLogger(__name__)

UNKNOWN_BARANGAY = "Unknown"
ALL_TIME_START = datetime(2000, 1, 1)
MONTH_LABEL_FORMAT = "%b %Y"

HIGH_SEVERITIES = (IncidentSeverity.HIGH, IncidentSeverity.CRITICAL)


@dataclass
class MunicipalSummary:
    """Municipality-wide rollup of incidents in scope."""
    metrics: IncidentMetrics = field(default_factory=IncidentMetrics)
    total_incidents: int = 0
    incidents_by_type: Dict[str, int] = field(default_factory=dict)
    incidents_by_status: Dict[str, int] = field(default_factory=dict)
    incidents_by_severity: Dict[str, int] = field(default_factory=dict)
    incidents_by_barangay: Dict[str, int] = field(default_factory=dict)
    resolved_incidents: int = 0
    high_critical_incidents: int = 0
    resolution_rate: float = 0
    avg_resolution_time_hours: float = 0
    monthly_trends: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['metrics'] = self.metrics.to_dict()
        return data


@dataclass
class BarangayAnalytics:
    """Self-service rollup for a barangay user's own reports."""
    total_incidents: int = 0
    reported_incidents: int = 0
    investigating_incidents: int = 0
    resolved_incidents: int = 0
    incidents_by_type: List[Dict[str, Any]] = field(default_factory=list)
    incidents_by_severity: List[Dict[str, Any]] = field(default_factory=list)
    monthly_trends: List[Dict[str, Any]] = field(default_factory=list)
    population_stats: IncidentMetrics = field(default_factory=IncidentMetrics)
    incidents_with_population_data: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['population_stats'] = self.population_stats.to_dict()
        return data


def _subtract_months(moment: datetime, months: int) -> datetime:
    """Go back whole calendar months, clamping the day to the target month."""
    month_index = moment.year * 12 + moment.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def resolve_date_range(preset: DateRangePreset, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Turn a named date range into concrete bounds.

    Args:
        preset: Named range; unknown names fall back to the last six months
        now: End of the range, defaults to utcnow

    Returns:
        (start, end) tuple
    """
    now = now or datetime.utcnow()

    try:
        preset = DateRangePreset(preset)
    except ValueError:
        logger.warning(f"Unknown date range '{preset}', using last 6 months")
        preset = DateRangePreset.LAST_6_MONTHS

    if preset == DateRangePreset.LAST_WEEK:
        start = now - timedelta(weeks=1)
    elif preset == DateRangePreset.LAST_MONTH:
        start = _subtract_months(now, 1)
    elif preset == DateRangePreset.LAST_3_MONTHS:
        start = _subtract_months(now, 3)
    elif preset == DateRangePreset.LAST_6_MONTHS:
        start = _subtract_months(now, 6)
    elif preset == DateRangePreset.LAST_YEAR:
        start = _subtract_months(now, 12)
    else:
        start = ALL_TIME_START

    return start, now


def barangay_key(incident: Incident) -> str:
    """Barangay an incident is grouped under in administrative rollups."""
    name = incident.barangay_name
    if name is None or not name.strip():
        return UNKNOWN_BARANGAY
    return name.strip()


def scope_incidents(
    user_context: Optional[UserContext],
    incidents: Iterable[Incident],
    barangay_names: Optional[Iterable[str]] = None
) -> List[Incident]:
    """
    Restrict incidents to what an actor may see in rollups.

    Args:
        user_context: Requesting actor
        incidents: Candidate incidents
        barangay_names: Optional reporter barangays selected by an admin

    Returns:
        Incidents visible to the actor; empty for unknown roles
    """
    if user_context is None:
        return []

    if is_admin(user_context):
        if not barangay_names:
            return list(incidents)
        selected = {name.strip() for name in barangay_names}
        return [incident for incident in incidents if barangay_key(incident) in selected]

    if user_context.has_role(UserRole.BARANGAY):
        return [incident for incident in incidents if incident.reported_by == user_context.user_id]

    logger.warning(f"Refusing statistics scope for unrecognized role '{user_context.role}'")
    return []


def filter_by_incident_barangay(incidents: Iterable[Incident], barangay: str) -> List[Incident]:
    """Filter by the barangay typed on the incident, case-insensitively."""
    wanted = (barangay or '').strip().lower()
    return [
        incident for incident in incidents
        if (incident.barangay or '').strip().lower() == wanted
    ]


def rollup_by_barangay(incidents: Iterable[Incident]) -> Dict[str, IncidentMetrics]:
    """
    Sum incident metrics per reporter barangay.

    Args:
        incidents: Incidents in scope

    Returns:
        Mapping of barangay name to summed metrics
    """
    grouped = defaultdict(list)

    for incident in incidents:
        grouped[barangay_key(incident)].append(compute_incident_metrics(incident))

    return {name: combine_metrics(metrics) for name, metrics in sorted(grouped.items())}


def monthly_trends(incidents: Iterable[Incident]) -> List[Dict[str, Any]]:
    """
    Count incidents per creation month.

    Args:
        incidents: Incidents to bucket

    Returns:
        Chronologically sorted list of {'month': 'Mon YYYY', 'incidents': n}
    """
    counts = Counter((incident.created_at.year, incident.created_at.month) for incident in incidents)

    return [
        {
            'month': datetime(year, month, 1).strftime(MONTH_LABEL_FORMAT),
            'incidents': counts[(year, month)],
        }
        for year, month in sorted(counts)
    ]


def average_resolution_time_hours(incidents: Iterable[Incident]) -> float:
    """Mean hours from creation to last update over resolved incidents, 0 if none."""
    durations = [
        (incident.updated_at - incident.created_at).total_seconds() / 3600
        for incident in incidents
        if incident.status == IncidentStatus.RESOLVED
    ]
    if not durations:
        return 0
    return round(sum(durations) / len(durations), 1)


def rollup_municipal(incidents: Iterable[Incident]) -> MunicipalSummary:
    """
    Roll up every incident in scope into one municipal summary.

    Population metrics are the plain sum of each incident's metrics, so they
    equal the sum of the per-barangay rollups.

    Args:
        incidents: Incidents in scope

    Returns:
        MunicipalSummary
    """
    incidents = list(incidents)
    total = len(incidents)

    resolved = sum(1 for incident in incidents if incident.status == IncidentStatus.RESOLVED)
    high_critical = sum(1 for incident in incidents if incident.severity in HIGH_SEVERITIES)

    summary = MunicipalSummary(
        metrics=combine_metrics(compute_incident_metrics(incident) for incident in incidents),
        total_incidents=total,
        incidents_by_type=dict(Counter(str(incident.incident_type) for incident in incidents)),
        incidents_by_status=dict(Counter(str(incident.status) for incident in incidents)),
        incidents_by_severity=dict(Counter(str(incident.severity) for incident in incidents)),
        incidents_by_barangay=dict(Counter(barangay_key(incident) for incident in incidents)),
        resolved_incidents=resolved,
        high_critical_incidents=high_critical,
        resolution_rate=round((resolved / total) * 100, 1) if total else 0,
        avg_resolution_time_hours=average_resolution_time_hours(incidents),
        monthly_trends=monthly_trends(incidents)
    )

    logger.debug(f"Municipal rollup over {total} incidents")
    return summary


def rollup_barangay_analytics(
    user_context: Optional[UserContext],
    incidents: Iterable[Incident]
) -> BarangayAnalytics:
    """
    Build the analytics view a barangay user sees for their own reports.

    Args:
        user_context: Requesting actor
        incidents: Candidate incidents, already filtered by date range

    Returns:
        BarangayAnalytics over the incidents the actor may see
    """
    scoped = scope_incidents(user_context, incidents)
    metrics = [compute_incident_metrics(incident) for incident in scoped]

    by_type = Counter(str(incident.incident_type) for incident in scoped)
    by_severity = Counter(str(incident.severity) for incident in scoped)

    return BarangayAnalytics(
        total_incidents=len(scoped),
        reported_incidents=sum(1 for i in scoped if i.status == IncidentStatus.REPORTED),
        investigating_incidents=sum(1 for i in scoped if i.status == IncidentStatus.INVESTIGATING),
        resolved_incidents=sum(1 for i in scoped if i.status == IncidentStatus.RESOLVED),
        incidents_by_type=[
            {'incident_type': name, 'count': count} for name, count in by_type.most_common()
        ],
        incidents_by_severity=[
            {'severity': name, 'count': count} for name, count in by_severity.items()
        ],
        monthly_trends=monthly_trends(scoped),
        population_stats=combine_metrics(metrics),
        incidents_with_population_data=sum(
            1 for item in metrics if item.source != PopulationSourceKind.NONE.value
        )
    )


def summarize_barangays(incidents: Iterable[Incident]) -> Dict[str, Any]:
    """
    Population overview per reporter barangay plus municipal totals.

    Args:
        incidents: Incidents in scope

    Returns:
        Dictionary with 'by_barangay' rows and 'overall_totals'
    """
    incidents = list(incidents)
    rollup = rollup_by_barangay(incidents)
    counts = Counter(barangay_key(incident) for incident in incidents)

    by_barangay = {
        name: {
            'total_incidents': counts[name],
            'total_population': metrics.total_population,
            'total_families': metrics.total_families,
            'total_displaced': metrics.displaced_persons,
            'has_population_data': metrics.source != PopulationSourceKind.NONE.value,
        }
        for name, metrics in rollup.items()
    }

    overall = combine_metrics(rollup.values())

    return {
        'by_barangay': by_barangay,
        'overall_totals': {
            'total_incidents': len(incidents),
            'total_population': overall.total_population,
            'total_families': overall.total_families,
            'total_displaced': overall.displaced_persons,
            'assistance_coverage': calculate_assistance_coverage(
                overall.families_assisted, overall.families_requiring_assistance
            ),
        },
    }


def summarize_infrastructure(incidents: Iterable[Incident]) -> Dict[str, int]:
    """
    Count infrastructure disruptions across incidents.

    Args:
        incidents: Incidents in scope

    Returns:
        Dictionary of disruption counts
    """
    reporting = [incident for incident in incidents if incident.has_infrastructure_status()]
    records = [incident.infrastructure_status for incident in reporting]

    return {
        'total_records': len(records),
        'roads_affected': sum(1 for record in records if record.roads_bridges_status is not None),
        'power_outages': sum(1 for record in records if record.power_outage_time is not None),
        'communication_issues': sum(
            1 for record in records if record.communication_interruption_time is not None
        ),
        'unique_barangays': len({barangay_key(incident) for incident in reporting}),
        'unique_incidents': len({incident.id for incident in reporting}),
    }
