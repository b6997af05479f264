# SPDX-License-Identifier: Apache-2.0

"""
Population aggregation for incidents.

This module contains pure functions computing population, displacement,
assistance and demographic metrics for a single incident. An incident has
two possible population sources: its family roster, or a flat population
summary record. The roster always wins; the summary is read only when the
roster is empty, and the two are never merged.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from models.entities import Incident, IncidentFamily, PopulationData
from .demographics import (
    AGE_BUCKETS,
    CASUALTY_BUCKETS,
    CIVIL_STATUS_BUCKETS,
    ETHNICITY_BUCKETS,
    GENDER_BUCKETS,
    VULNERABLE_GROUP_BUCKETS,
    classify_member,
)

logger = logging.getLogger(__name__)


class PopulationSourceKind(str, Enum):
    """Which record an incident's population metrics come from."""
    FAMILIES = "families"
    POPULATION_DATA = "population_data"
    NONE = "none"


@dataclass
class PopulationSource:
    """Resolved population source for one incident."""
    kind: PopulationSourceKind
    families: List[IncidentFamily] = field(default_factory=list)
    population_data: Optional[PopulationData] = None


def _zero_breakdown(buckets: Iterable[str]) -> Dict[str, int]:
    return {bucket: 0 for bucket in buckets}


@dataclass
class IncidentMetrics:
    """Population metrics for one incident, or a sum over several."""
    total_population: int = 0
    total_persons: int = 0
    total_families: int = 0
    displaced_families: int = 0
    displaced_persons: int = 0
    families_assisted: int = 0
    families_requiring_assistance: int = 0
    gender_breakdown: Dict[str, int] = field(default_factory=lambda: _zero_breakdown(GENDER_BUCKETS))
    civil_status_breakdown: Dict[str, int] = field(default_factory=lambda: _zero_breakdown(CIVIL_STATUS_BUCKETS))
    vulnerable_group_breakdown: Dict[str, int] = field(
        default_factory=lambda: _zero_breakdown(VULNERABLE_GROUP_BUCKETS)
    )
    age_breakdown: Dict[str, int] = field(default_factory=lambda: _zero_breakdown(AGE_BUCKETS))
    age_category_breakdown: Dict[str, int] = field(default_factory=lambda: _zero_breakdown(AGE_BUCKETS))
    ethnicity_breakdown: Dict[str, int] = field(default_factory=lambda: _zero_breakdown(ETHNICITY_BUCKETS))
    casualty_breakdown: Dict[str, int] = field(default_factory=lambda: _zero_breakdown(CASUALTY_BUCKETS))
    source: str = PopulationSourceKind.NONE.value

    @property
    def assistance_coverage(self) -> float:
        return calculate_assistance_coverage(self.families_assisted, self.families_requiring_assistance)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['assistance_coverage'] = self.assistance_coverage
        return data


_BREAKDOWN_FIELDS = (
    'gender_breakdown',
    'civil_status_breakdown',
    'vulnerable_group_breakdown',
    'age_breakdown',
    'age_category_breakdown',
    'ethnicity_breakdown',
    'casualty_breakdown',
)

_TOTAL_FIELDS = (
    'total_population',
    'total_persons',
    'total_families',
    'displaced_families',
    'displaced_persons',
    'families_assisted',
    'families_requiring_assistance',
)


def calculate_assistance_coverage(families_assisted: int, families_requiring_assistance: int) -> float:
    """
    Percentage of families in need that received any assistance.

    Args:
        families_assisted: Families that received assistance
        families_requiring_assistance: Families requiring assistance

    Returns:
        Percentage rounded to one decimal, 0 when nobody requires assistance
    """
    if not families_requiring_assistance:
        return 0
    return round((families_assisted / families_requiring_assistance) * 100, 1)


def resolve_population_source(incident: Incident) -> PopulationSource:
    """
    Pick the single population source for an incident.

    Args:
        incident: Incident with families and population data loaded

    Returns:
        PopulationSource tagged with the chosen kind
    """
    if incident.families:
        return PopulationSource(kind=PopulationSourceKind.FAMILIES, families=incident.families)

    if incident.population_data is not None:
        return PopulationSource(
            kind=PopulationSourceKind.POPULATION_DATA,
            population_data=incident.population_data
        )

    return PopulationSource(kind=PopulationSourceKind.NONE)


def _metrics_from_families(incident_id: str, families: List[IncidentFamily]) -> IncidentMetrics:
    metrics = IncidentMetrics(source=PopulationSourceKind.FAMILIES.value)

    metrics.total_families = len(families)
    metrics.families_requiring_assistance = len(families)
    # Declared family_size, which may differ from the number of member rows.
    metrics.total_population = sum(family.family_size for family in families)
    metrics.displaced_families = sum(1 for family in families if family.is_displaced())
    metrics.families_assisted = sum(1 for family in families if family.has_assistance())

    for family in families:
        for member in family.members:
            metrics.total_persons += 1
            if member.is_displaced():
                metrics.displaced_persons += 1

            classification = classify_member(member)

            metrics.gender_breakdown[classification.gender] += 1
            metrics.civil_status_breakdown[classification.civil_status] += 1
            metrics.age_breakdown[classification.age_bucket] += 1

            if classification.age_category_bucket:
                metrics.age_category_breakdown[classification.age_category_bucket] += 1
            if classification.ethnicity:
                metrics.ethnicity_breakdown[classification.ethnicity] += 1
            if classification.casualty:
                metrics.casualty_breakdown[classification.casualty] += 1

            if not classification.vulnerable_groups_valid:
                logger.warning(
                    "Skipping malformed vulnerable groups for family member",
                    extra={
                        "incident_id": incident_id,
                        "family_number": family.family_number,
                        "member_id": member.id,
                    }
                )
                continue

            for bucket in classification.vulnerable_groups:
                metrics.vulnerable_group_breakdown[bucket] += 1

    return metrics


def _metrics_from_population_data(data: PopulationData) -> IncidentMetrics:
    metrics = IncidentMetrics(source=PopulationSourceKind.POPULATION_DATA.value)

    metrics.total_population = data.total_population
    # No member rows exist; the summary's population stands in for them.
    metrics.total_persons = data.total_population
    metrics.total_families = data.total_families
    metrics.displaced_families = data.displaced_families
    metrics.displaced_persons = data.displaced_persons
    metrics.families_assisted = data.families_assisted
    metrics.families_requiring_assistance = data.families_requiring_assistance

    metrics.gender_breakdown = {
        'male': data.male_count,
        'female': data.female_count,
        'lgbtqia': data.lgbtqia_count,
    }
    metrics.civil_status_breakdown = {
        'single': data.single_count,
        'married': data.married_count,
        'widowed': data.widowed_count,
        'separated': data.separated_count,
        'live_in': data.live_in_count,
    }
    metrics.vulnerable_group_breakdown = {
        'pwd': data.pwd_count,
        'pregnant': data.pregnant_count,
        'elderly': data.elderly_count,
        'lactating_mother': data.lactating_mother_count,
        'solo_parent': data.solo_parent_count,
        'indigenous_people': data.indigenous_people_count,
        'lgbtqia_persons': data.lgbtqia_persons_count,
        'child_headed_household': data.child_headed_household_count,
        'gbv_victims': data.gbv_victims_count,
        'four_ps_beneficiaries': data.four_ps_beneficiaries_count,
        'single_headed_family': data.single_headed_family_count,
    }
    metrics.age_breakdown = dict(data.age_distribution)
    metrics.age_category_breakdown = dict(data.age_distribution)
    metrics.ethnicity_breakdown = {
        'christian': data.christian_count,
        'subanen_ip': data.subanen_ip_count,
        'moro': data.moro_count,
    }

    return metrics


def compute_incident_metrics(incident: Incident) -> IncidentMetrics:
    """
    Compute population metrics for one incident.

    Uses the family roster when present, otherwise the population summary,
    otherwise returns all-zero metrics.

    Args:
        incident: Incident with families, members and population data loaded

    Returns:
        IncidentMetrics for the incident
    """
    source = resolve_population_source(incident)

    if source.kind == PopulationSourceKind.FAMILIES:
        return _metrics_from_families(incident.id, source.families)

    if source.kind == PopulationSourceKind.POPULATION_DATA:
        return _metrics_from_population_data(source.population_data)

    return IncidentMetrics()


def combine_metrics(metrics_list: Iterable[IncidentMetrics]) -> IncidentMetrics:
    """
    Sum several metrics structs field by field.

    Args:
        metrics_list: Metrics to add up

    Returns:
        Summed IncidentMetrics; its source lists the contributing kinds
    """
    combined = IncidentMetrics()
    sources = set()

    for metrics in metrics_list:
        for name in _TOTAL_FIELDS:
            setattr(combined, name, getattr(combined, name) + getattr(metrics, name))

        for name in _BREAKDOWN_FIELDS:
            totals = Counter(getattr(combined, name))
            totals.update(getattr(metrics, name))
            setattr(combined, name, dict(totals))

        # Already-combined metrics carry a comma-separated source list
        sources.update(
            source for source in metrics.source.split(",")
            if source != PopulationSourceKind.NONE.value
        )

    combined.source = ",".join(sorted(sources)) if sources else PopulationSourceKind.NONE.value
    return combined


def calculate_casualties(incident: Incident) -> Dict[str, int]:
    """
    Count casualties recorded on family members.

    Args:
        incident: Incident with families loaded

    Returns:
        Dictionary with dead, injured and missing counts
    """
    metrics = compute_incident_metrics(incident)
    return dict(metrics.casualty_breakdown)


def roster_totals(families: List[IncidentFamily]) -> Tuple[int, int]:
    """Number of families and number of member rows in a roster."""
    return len(families), sum(len(family.members) for family in families)


def build_incident_report(incident: Incident) -> Dict[str, Any]:
    """
    Build the flat per-incident report row consumed by export layers.

    Args:
        incident: Incident with families and population data loaded

    Returns:
        Dictionary of report columns
    """
    metrics = compute_incident_metrics(incident)
    vulnerable = metrics.vulnerable_group_breakdown

    return {
        # Population affected
        'no_of_families': metrics.total_families,
        'no_of_persons': metrics.total_persons,
        'total_population': metrics.total_population,
        'displaced_families': metrics.displaced_families,
        'displaced_persons': metrics.displaced_persons,
        'families_requiring_assistance': metrics.families_requiring_assistance,
        'families_assisted': metrics.families_assisted,
        'percent_families_assisted': metrics.assistance_coverage,

        # Gender distribution
        'male_count': metrics.gender_breakdown.get('male', 0),
        'female_count': metrics.gender_breakdown.get('female', 0),
        'lgbtqia_count': metrics.gender_breakdown.get('lgbtqia', 0),

        # Civil status
        'single_count': metrics.civil_status_breakdown.get('single', 0),
        'married_count': metrics.civil_status_breakdown.get('married', 0),
        'widowed_count': metrics.civil_status_breakdown.get('widowed', 0),
        'separated_count': metrics.civil_status_breakdown.get('separated', 0),
        'live_in_count': metrics.civil_status_breakdown.get('live_in', 0),

        # Vulnerable groups
        'pwd_count': vulnerable.get('pwd', 0),
        'pregnant_count': vulnerable.get('pregnant', 0),
        'elderly_count': vulnerable.get('elderly', 0),
        'lactating_mother_count': vulnerable.get('lactating_mother', 0),
        'solo_parent_count': vulnerable.get('solo_parent', 0),
        'indigenous_people_count': vulnerable.get('indigenous_people', 0),
        'lgbtqia_persons_count': vulnerable.get('lgbtqia_persons', 0),
        'child_headed_household_count': vulnerable.get('child_headed_household', 0),
        'gbv_victims_count': vulnerable.get('gbv_victims', 0),
        'four_ps_beneficiaries_count': vulnerable.get('four_ps_beneficiaries', 0),
        'single_headed_family_count': vulnerable.get('single_headed_family', 0),

        # Age distribution
        'infant_count': metrics.age_breakdown.get('infant', 0),
        'toddler_count': metrics.age_breakdown.get('toddler', 0),
        'preschooler_count': metrics.age_breakdown.get('preschooler', 0),
        'school_age_count': metrics.age_breakdown.get('school_age', 0),
        'teen_age_count': metrics.age_breakdown.get('teen_age', 0),
        'adult_count': metrics.age_breakdown.get('adult', 0),
        'elderly_age_count': metrics.age_breakdown.get('elderly', 0),

        # Casualties
        'dead_count': metrics.casualty_breakdown.get('dead', 0),
        'injured_count': metrics.casualty_breakdown.get('injured', 0),
        'missing_count': metrics.casualty_breakdown.get('missing', 0),

        'source': metrics.source,
    }
