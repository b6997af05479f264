# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the barangay incident core.
"""

# Base models
from .base import BaseEntity, generate_object_id

# Enumerations
from .enums import (
    IncidentType,
    IncidentSeverity,
    IncidentStatus,
    UserRole,
    IncidentAction,
    PositionInFamily,
    AgeCategory,
    CivilStatus,
    Ethnicity,
    CasualtyType,
    DateRangePreset
)

# Core entities
from .entities import (
    ACTIVE_STATUSES,
    Reporter,
    UserContext,
    IncidentFamilyMember,
    IncidentFamily,
    PopulationData,
    InfrastructureStatus,
    ArchiveEpisode,
    Incident
)

__all__ = [
    # Base
    "BaseEntity",
    "generate_object_id",

    # Enums
    "IncidentType",
    "IncidentSeverity",
    "IncidentStatus",
    "UserRole",
    "IncidentAction",
    "PositionInFamily",
    "AgeCategory",
    "CivilStatus",
    "Ethnicity",
    "CasualtyType",
    "DateRangePreset",

    # Entities
    "ACTIVE_STATUSES",
    "Reporter",
    "UserContext",
    "IncidentFamilyMember",
    "IncidentFamily",
    "PopulationData",
    "InfrastructureStatus",
    "ArchiveEpisode",
    "Incident",
]
