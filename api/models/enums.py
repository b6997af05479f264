# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the barangay incident platform.
"""

from enum import Enum


class IncidentType(str, Enum):
    """Kinds of reportable incidents."""
    FLOOD = "Flood"
    LANDSLIDE = "Landslide"
    FIRE = "Fire"
    EARTHQUAKE = "Earthquake"
    VEHICULAR = "Vehicular"


class IncidentSeverity(str, Enum):
    """Incident severity levels."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class IncidentStatus(str, Enum):
    """Incident workflow status enumeration."""
    REPORTED = "Reported"
    INVESTIGATING = "Investigating"
    RESOLVED = "Resolved"
    ARCHIVED = "Archived"


class UserRole(str, Enum):
    """Roles an actor can hold."""
    ADMIN = "admin"
    BARANGAY = "barangay"


class IncidentAction(str, Enum):
    """Mutations gated by the incident access policy."""
    EDIT = "edit"
    DELETE = "delete"
    STATUS_CHANGE = "status_change"
    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"
    PURGE = "purge"
    MODIFY_POPULATION_DATA = "modify_population_data"
    MODIFY_INFRASTRUCTURE_STATUS = "modify_infrastructure_status"


class PositionInFamily(str, Enum):
    """Position of a member within the family."""
    HEAD_FATHER = "Head (Father)"
    HEAD_MOTHER = "Head (Mother)"
    HEAD_SOLO_PARENT = "Head (Solo Parent)"
    HEAD_SINGLE = "Head (Single)"
    HEAD_CHILD = "Head (Child)"
    MEMBER = "Member"


class AgeCategory(str, Enum):
    """Stored age-category labels as captured on the intake form."""
    INFANT = "Infant (0-6 mos)"
    TODDLER = "Toddlers (7 mos- 2 y/o)"
    PRESCHOOLER = "Preschooler (3-5 y/o)"
    SCHOOL_AGE = "School Age (6-12 y/o)"
    TEEN_AGE = "Teen Age (13-17 y/o)"
    ADULT = "Adult (18-59 y/o)"
    ELDERLY = "Elderly (60 and above)"


class CivilStatus(str, Enum):
    """Civil status labels as captured on the intake form."""
    SINGLE = "Single"
    MARRIED = "Married"
    WIDOWED = "Widowed"
    SEPARATED = "Separated"
    LIVE_IN = "Live-In/Cohabiting"


class Ethnicity(str, Enum):
    """Religion / ethnicity bands tracked by the municipality."""
    CHRISTIAN = "CHRISTIAN"
    SUBANEN = "SUBANEN (IPs)"
    MORO = "MORO"


class CasualtyType(str, Enum):
    """Casualty markers for family members."""
    DEAD = "Dead"
    INJURED_ILL = "Injured/ill"
    MISSING = "Missing"


class DateRangePreset(str, Enum):
    """Named date ranges accepted by analytics queries."""
    LAST_WEEK = "last_week"
    LAST_MONTH = "last_month"
    LAST_3_MONTHS = "last_3_months"
    LAST_6_MONTHS = "last_6_months"
    LAST_YEAR = "last_year"
    ALL_TIME = "all_time"
