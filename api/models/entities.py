# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the barangay incident platform.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any, Iterator
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from .base import BaseEntity
from .enums import (
    IncidentType,
    IncidentSeverity,
    IncidentStatus,
    UserRole
)


ACTIVE_STATUSES = (
    IncidentStatus.REPORTED,
    IncidentStatus.INVESTIGATING,
    IncidentStatus.RESOLVED,
)


class Reporter(BaseModel):
    """Profile of the user who filed an incident."""

    id: str = Field(..., description="User ID")
    name: Optional[str] = Field(None, description="User display name")
    email: Optional[str] = Field(None, description="User email")
    role: str = Field(default=UserRole.BARANGAY.value, description="User role")
    barangay_name: Optional[str] = Field(None, description="Barangay on the user's profile")
    municipality: Optional[str] = Field(None, description="Municipality on the user's profile")


class UserContext(BaseModel):
    """Actor performing a request, as resolved by the authentication layer."""

    user_id: str = Field(..., description="Authenticated user ID")
    role: str = Field(..., description="User role")
    barangay_name: Optional[str] = Field(None, description="Barangay on the user's profile")
    municipality: Optional[str] = Field(None, description="Municipality on the user's profile")
    name: Optional[str] = Field(None, description="User display name")
    email: Optional[str] = Field(None, description="User email")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def has_role(self, role: UserRole) -> bool:
        """Check if user holds a specific role."""
        expected = role.value if isinstance(role, UserRole) else role
        return self.role == expected


class IncidentFamilyMember(BaseModel):
    """A person listed in an affected family."""

    id: Optional[str] = Field(None, description="Member identifier")
    family_id: Optional[str] = Field(None, description="Owning family ID")
    last_name: str = Field(..., min_length=1, max_length=255)
    first_name: str = Field(..., min_length=1, max_length=255)
    middle_name: Optional[str] = Field(None, max_length=255)
    position_in_family: str = Field(..., description="Position within the family")
    sex_gender_identity: str = Field(..., description="Free-text gender identity")
    age: int = Field(..., ge=0, le=120, description="Age in years")
    category: Optional[str] = Field(None, description="Stored age-category label")
    civil_status: str = Field(..., description="Civil status label")
    ethnicity: Optional[str] = Field(None, description="Religion / ethnicity label")
    vulnerable_groups: Any = Field(default_factory=list, description="Vulnerable-group tags as stored")
    casualty: Optional[str] = Field(None, description="Dead, Injured/ill or Missing")
    displaced: str = Field(default="N", description="Displacement flag (Y/N)")
    pwd_type: Optional[str] = Field(None, max_length=255)
    assistance_received: bool = False
    food_assistance: bool = False
    non_food_assistance: bool = False
    medical_attention: bool = False
    psychological_support: bool = False
    other_remarks: Optional[str] = None

    @field_validator('displaced', mode='before')
    @classmethod
    def validate_displaced(cls, v):
        """Normalize the displacement flag."""
        if isinstance(v, bool):
            return 'Y' if v else 'N'
        if v is None:
            return 'N'
        value = str(v).strip().upper()
        if value not in ('Y', 'N'):
            raise ValueError('Displaced must be Y or N')
        return value

    @field_validator('casualty', mode='before')
    @classmethod
    def validate_casualty(cls, v):
        """Treat blank casualty markers as absent."""
        if v is None or not str(v).strip():
            return None
        return str(v).strip()

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(part for part in parts if part)

    def is_displaced(self) -> bool:
        return self.displaced == 'Y'


class IncidentFamily(BaseModel):
    """An affected family attached to an incident."""

    id: Optional[str] = Field(None, description="Family identifier")
    incident_id: Optional[str] = Field(None, description="Owning incident ID")
    family_number: int = Field(..., ge=1, description="Family number, unique within the incident")
    family_size: int = Field(..., ge=1, description="Declared family size")
    evacuation_center: Optional[str] = Field(None, max_length=255)
    alternative_location: Optional[str] = Field(None, max_length=255)
    assistance_received: bool = False
    food_assistance: bool = False
    non_food_assistance: bool = False
    shelter_assistance: bool = False
    medical_assistance: bool = False
    other_remarks: Optional[str] = None
    members: List[IncidentFamilyMember] = Field(default_factory=list)

    @field_validator('evacuation_center', mode='before')
    @classmethod
    def validate_evacuation_center(cls, v):
        """Blank evacuation centres mean the family was not displaced."""
        if v is None or not str(v).strip():
            return None
        return str(v).strip()

    def is_displaced(self) -> bool:
        return self.evacuation_center is not None

    def has_assistance(self) -> bool:
        """Check if the family received any of the five forms of assistance."""
        return any((
            self.food_assistance,
            self.non_food_assistance,
            self.shelter_assistance,
            self.medical_assistance,
            self.assistance_received,
        ))


class PopulationData(BaseEntity):
    """Flat, pre-aggregated population summary for an incident."""

    incident_id: str = Field(..., description="Owning incident ID")

    # Displacement and assistance
    displaced_families: int = Field(default=0, ge=0)
    displaced_persons: int = Field(default=0, ge=0)
    families_requiring_assistance: int = Field(default=0, ge=0)
    families_assisted: int = Field(default=0, ge=0)

    # Gender distribution
    male_count: int = Field(default=0, ge=0)
    female_count: int = Field(default=0, ge=0)
    lgbtqia_count: int = Field(default=0, ge=0)

    # Civil status
    single_count: int = Field(default=0, ge=0)
    married_count: int = Field(default=0, ge=0)
    widowed_count: int = Field(default=0, ge=0)
    separated_count: int = Field(default=0, ge=0)
    live_in_count: int = Field(default=0, ge=0)

    # Special groups
    pwd_count: int = Field(default=0, ge=0)
    pregnant_count: int = Field(default=0, ge=0)
    elderly_count: int = Field(default=0, ge=0)
    lactating_mother_count: int = Field(default=0, ge=0)
    solo_parent_count: int = Field(default=0, ge=0)
    indigenous_people_count: int = Field(default=0, ge=0)
    lgbtqia_persons_count: int = Field(default=0, ge=0)
    child_headed_household_count: int = Field(default=0, ge=0)
    gbv_victims_count: int = Field(default=0, ge=0)
    four_ps_beneficiaries_count: int = Field(default=0, ge=0)
    single_headed_family_count: int = Field(default=0, ge=0)

    # Age distribution
    infant_count: int = Field(default=0, ge=0)
    toddler_count: int = Field(default=0, ge=0)
    preschooler_count: int = Field(default=0, ge=0)
    school_age_count: int = Field(default=0, ge=0)
    teen_age_count: int = Field(default=0, ge=0)
    adult_count: int = Field(default=0, ge=0)
    elderly_age_count: int = Field(default=0, ge=0)

    # Religion
    christian_count: int = Field(default=0, ge=0)
    subanen_ip_count: int = Field(default=0, ge=0)
    moro_count: int = Field(default=0, ge=0)

    @field_validator('*', mode='before')
    @classmethod
    def null_counts_to_zero(cls, v, info):
        """Stored counts may be null; treat them as zero."""
        if v is None and info.field_name.endswith(('_count', '_families', '_persons', '_assistance', '_assisted')):
            return 0
        return v

    @property
    def total_population(self) -> int:
        return self.male_count + self.female_count + self.lgbtqia_count

    @property
    def total_families(self) -> int:
        return self.displaced_families

    @property
    def assistance_percentage(self) -> float:
        if self.families_requiring_assistance == 0:
            return 0
        return round((self.families_assisted / self.families_requiring_assistance) * 100, 2)

    @property
    def age_distribution(self) -> Dict[str, int]:
        return {
            'infant': self.infant_count,
            'toddler': self.toddler_count,
            'preschooler': self.preschooler_count,
            'school_age': self.school_age_count,
            'teen_age': self.teen_age_count,
            'adult': self.adult_count,
            'elderly': self.elderly_age_count,
        }


class InfrastructureStatus(BaseEntity):
    """Roads, power and communication status for an incident."""

    incident_id: str = Field(..., description="Owning incident ID")
    roads_bridges_status: Optional[str] = None
    roads_reported_not_passable: Optional[datetime] = None
    roads_reported_passable: Optional[datetime] = None
    roads_remarks: Optional[str] = None
    power_outage_time: Optional[datetime] = None
    power_restored_time: Optional[datetime] = None
    power_remarks: Optional[str] = None
    communication_interruption_time: Optional[datetime] = None
    communication_restored_time: Optional[datetime] = None
    communication_remarks: Optional[str] = None

    @field_validator(
        'roads_reported_not_passable', 'roads_reported_passable',
        'power_outage_time', 'power_restored_time',
        'communication_interruption_time', 'communication_restored_time',
        mode='before'
    )
    @classmethod
    def blank_times_to_none(cls, v):
        """Empty form values mean the event has not happened."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ArchiveEpisode(BaseModel):
    """One completed archive/unarchive cycle of an incident."""

    archived_at: Optional[datetime] = None
    archived_by: Optional[str] = None
    archive_reason: Optional[str] = None
    status_before_archive: Optional[str] = None
    unarchived_at: datetime
    unarchived_by: str
    unarchive_reason: str
    previous_status: str
    new_status: str


class Incident(BaseEntity):
    """Core incident entity with its eagerly loaded relations."""

    # Archive/unarchive touch several fields at once; the archive invariant is
    # checked on construction instead of on every assignment.
    model_config = ConfigDict(validate_assignment=False)

    reported_by: str = Field(..., description="User ID of the reporter")
    incident_type: IncidentType = Field(..., description="Incident type")
    title: str = Field(..., min_length=1, max_length=255, description="Incident title")
    description: Optional[str] = Field(None, description="Incident description")
    location: str = Field(..., min_length=1, max_length=255, description="Incident location")
    barangay: Optional[str] = Field(None, max_length=255, description="Barangay typed on the report")
    purok: Optional[str] = Field(None, max_length=255)
    incident_date: datetime = Field(default_factory=datetime.utcnow, description="When the incident happened")
    severity: IncidentSeverity = Field(..., description="Incident severity")
    status: IncidentStatus = Field(default=IncidentStatus.REPORTED, description="Workflow status")
    affected_families: int = Field(default=0, ge=0)
    affected_individuals: int = Field(default=0, ge=0)
    casualties: Dict[str, int] = Field(default_factory=lambda: {'dead': 0, 'injured': 0, 'missing': 0})
    response_actions: Optional[str] = None
    admin_notes: Optional[str] = None
    archive_reason: Optional[str] = None
    archived_by: Optional[str] = None
    archived_at: Optional[datetime] = None
    status_before_archive: Optional[str] = None
    unarchive_history: List[ArchiveEpisode] = Field(default_factory=list)

    # Relations, eagerly loaded by the repository
    reporter: Optional[Reporter] = None
    families: List[IncidentFamily] = Field(default_factory=list)
    population_data: Optional[PopulationData] = None
    infrastructure_status: Optional[InfrastructureStatus] = None

    @field_validator('title', 'location')
    @classmethod
    def validate_required_text(cls, v):
        """Validate required free-text fields."""
        if not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()

    @model_validator(mode='after')
    def validate_archive_state(self):
        """Archived incidents carry archive metadata; others carry none."""
        archive_fields = (self.archive_reason, self.archived_by, self.archived_at)

        if self.status == IncidentStatus.ARCHIVED:
            if any(value is None for value in archive_fields):
                raise ValueError('Archived incidents require archive_reason, archived_by and archived_at')
        elif any(value is not None for value in archive_fields):
            raise ValueError('Only archived incidents may carry archive metadata')

        return self

    @property
    def barangay_name(self) -> Optional[str]:
        """Barangay on the reporter's profile."""
        return self.reporter.barangay_name if self.reporter else None

    @property
    def municipality(self) -> Optional[str]:
        return self.reporter.municipality if self.reporter else None

    def is_archived(self) -> bool:
        return self.status == IncidentStatus.ARCHIVED

    def has_population_data(self) -> bool:
        return self.population_data is not None

    def has_infrastructure_status(self) -> bool:
        return self.infrastructure_status is not None

    def iter_members(self) -> Iterator[IncidentFamilyMember]:
        """Iterate over every member of every family."""
        for family in self.families:
            yield from family.members

    def replace_families(self, families: List[IncidentFamily]) -> None:
        """Replace the whole family roster and refresh the denormalised counts."""
        self.families = list(families)
        self.affected_families = len(self.families)
        self.affected_individuals = sum(len(family.members) for family in self.families)

    def change_status(self, new_status: IncidentStatus, admin_notes: Optional[str] = None,
                      now: datetime = None) -> None:
        """Move the incident to another active status."""
        if self.is_archived():
            raise ValueError('Archived incidents must be unarchived before changing status')

        if IncidentStatus(new_status) not in ACTIVE_STATUSES:
            raise ValueError(f'Invalid status: {new_status}')

        self.status = IncidentStatus(new_status).value
        if admin_notes is not None:
            self.admin_notes = admin_notes
        self.update_timestamp(now)

    def archive(self, user_id: str, reason: str, now: datetime = None) -> None:
        """Archive the incident."""
        if self.is_archived():
            raise ValueError('Incident is already archived')

        now = now or datetime.utcnow()
        self.status_before_archive = IncidentStatus(self.status).value
        self.archive_reason = reason
        self.archived_by = user_id
        self.archived_at = now
        self.status = IncidentStatus.ARCHIVED.value
        self.update_timestamp(now)

    def unarchive(self, user_id: str, reason: str, new_status: Optional[IncidentStatus] = None,
                  now: datetime = None) -> ArchiveEpisode:
        """Restore an archived incident and record the archive episode."""
        if not self.is_archived():
            raise ValueError('Incident is not archived')

        target = IncidentStatus(new_status or self.status_before_archive or IncidentStatus.REPORTED)
        if target not in ACTIVE_STATUSES:
            raise ValueError(f'Cannot unarchive to status: {target.value}')

        now = now or datetime.utcnow()
        episode = ArchiveEpisode(
            archived_at=self.archived_at,
            archived_by=self.archived_by,
            archive_reason=self.archive_reason,
            status_before_archive=self.status_before_archive,
            unarchived_at=now,
            unarchived_by=user_id,
            unarchive_reason=reason,
            previous_status=IncidentStatus(self.status).value,
            new_status=target.value
        )

        self.unarchive_history = self.unarchive_history + [episode]
        self.status = target.value
        self.archive_reason = None
        self.archived_by = None
        self.archived_at = None
        self.status_before_archive = None

        note = (
            "--- UNARCHIVED ---\n"
            f"Unarchived on: {now.strftime('%Y-%m-%d %H:%M:%S')}\n"
            f"Reason: {reason}\n"
            f"New Status: {target.value}"
        )
        self.admin_notes = f"{self.admin_notes}\n\n{note}" if self.admin_notes else note
        self.update_timestamp(now)

        return episode
