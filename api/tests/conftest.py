# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from datetime import datetime, timedelta
from typing import Dict, Any
from unittest.mock import MagicMock
from bson import ObjectId

from models.entities import (
    Incident,
    IncidentFamily,
    IncidentFamilyMember,
    PopulationData,
    InfrastructureStatus,
    Reporter,
    UserContext,
)
from models.enums import IncidentStatus, PositionInFamily, UserRole

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['MONGODB_DATABASE'] = 'barangay_incidents_test'
os.environ['OTEL_ENABLED'] = 'false'

NOW = datetime(2025, 11, 20, 12, 0, 0)


@pytest.fixture
def now():
    """Fixed clock for time-dependent rules."""
    return NOW


@pytest.fixture
def admin_user():
    """Municipal administrator."""
    return UserContext(
        user_id=str(ObjectId()),
        role=UserRole.ADMIN.value,
        name="MDRRMO Admin",
        email="admin@example.com",
        municipality="Lumbia"
    )


@pytest.fixture
def barangay_user():
    """Barangay reporter."""
    return UserContext(
        user_id=str(ObjectId()),
        role=UserRole.BARANGAY.value,
        name="Barangay Poblacion",
        email="poblacion@example.com",
        barangay_name="Poblacion",
        municipality="Lumbia"
    )


@pytest.fixture
def other_barangay_user():
    """A different barangay reporter."""
    return UserContext(
        user_id=str(ObjectId()),
        role=UserRole.BARANGAY.value,
        name="Barangay San Isidro",
        barangay_name="San Isidro",
        municipality="Lumbia"
    )


def build_member(**overrides) -> IncidentFamilyMember:
    """Family member with sensible defaults."""
    data = {
        "last_name": "Dela Cruz",
        "first_name": "Juan",
        "position_in_family": PositionInFamily.HEAD_FATHER.value,
        "sex_gender_identity": "Male",
        "age": 35,
        "category": "Adult (18-59 y/o)",
        "civil_status": "Married",
        "ethnicity": "CHRISTIAN",
        "vulnerable_groups": [],
        "displaced": "N",
    }
    data.update(overrides)
    return IncidentFamilyMember(**data)


def build_family(family_number: int = 1, family_size: int = None, members=None, **overrides) -> IncidentFamily:
    """Family with one default member unless members are given."""
    members = members if members is not None else [build_member()]
    data = {
        "family_number": family_number,
        "family_size": family_size if family_size is not None else max(len(members), 1),
        "members": members,
    }
    data.update(overrides)
    return IncidentFamily(**data)


def build_incident(reporter: UserContext = None, created_at: datetime = NOW, families=None,
                   population_data: Dict[str, Any] = None, **overrides) -> Incident:
    """Incident reported by the given actor."""
    reporter_id = reporter.user_id if reporter else str(ObjectId())
    incident_id = overrides.pop("id", str(ObjectId()))
    data = {
        "id": incident_id,
        "reported_by": reporter_id,
        "reporter": Reporter(
            id=reporter_id,
            role=reporter.role if reporter else UserRole.BARANGAY.value,
            barangay_name=reporter.barangay_name if reporter else "Poblacion",
            municipality="Lumbia"
        ),
        "incident_type": "Flood",
        "title": "Flash flood along the river",
        "description": "Water level rose after heavy rain",
        "location": "Purok 3 riverside",
        "barangay": reporter.barangay_name if reporter and reporter.barangay_name else "Poblacion",
        "incident_date": created_at,
        "severity": "High",
        "status": IncidentStatus.REPORTED.value,
        "families": families or [],
        "created_at": created_at,
        "updated_at": created_at,
    }
    if population_data is not None:
        data["population_data"] = PopulationData(incident_id=incident_id, **population_data)
    data.update(overrides)
    return Incident(**data)


@pytest.fixture
def member_factory():
    return build_member


@pytest.fixture
def family_factory():
    return build_family


@pytest.fixture
def incident_factory():
    return build_incident


@pytest.fixture
def sample_incident_payload():
    """Incident creation payload with a two-family roster."""
    return {
        "incident_type": "Flood",
        "title": "Flash flood along the river",
        "description": "Water level rose after heavy rain",
        "location": "Purok 3 riverside",
        "barangay": "Poblacion",
        "purok": "Purok 3",
        "incident_date": "2025-11-20T08:30:00",
        "severity": "High",
        "families": [
            {
                "family_number": 1,
                "family_size": 3,
                "evacuation_center": "Poblacion Covered Court",
                "food_assistance": True,
                "members": [
                    {
                        "last_name": "Dela Cruz", "first_name": "Juan",
                        "position_in_family": "Head (Father)", "sex_gender_identity": "Male",
                        "age": 40, "category": "Adult (18-59 y/o)", "civil_status": "Married",
                        "displaced": "Y"
                    },
                    {
                        "last_name": "Dela Cruz", "first_name": "Maria",
                        "position_in_family": "Member", "sex_gender_identity": "Female",
                        "age": 38, "category": "Adult (18-59 y/o)", "civil_status": "Married",
                        "vulnerable_groups": ["Pregnant"], "displaced": "Y"
                    },
                    {
                        "last_name": "Dela Cruz", "first_name": "Ana",
                        "position_in_family": "Member", "sex_gender_identity": "Female",
                        "age": 4, "category": "Preschooler (3-5 y/o)", "civil_status": "Single",
                        "displaced": "Y"
                    },
                ],
            },
            {
                "family_number": 2,
                "family_size": 1,
                "members": [
                    {
                        "last_name": "Santos", "first_name": "Pedro",
                        "position_in_family": "Head (Single)", "sex_gender_identity": "Male",
                        "age": 67, "category": "Elderly (60 and above)", "civil_status": "Widowed",
                        "vulnerable_groups": ["Elderly", "PWD"], "displaced": "N"
                    },
                ],
            },
        ],
    }


@pytest.fixture
def infrastructure_status_factory():
    def _build(incident_id: str, **overrides) -> InfrastructureStatus:
        return InfrastructureStatus(incident_id=incident_id, **overrides)
    return _build


@pytest.fixture
def mongodb_service():
    """MongoDB service double with per-collection mocks and inline transactions."""
    service = MagicMock()
    collections = {}

    def get_collection(name):
        if name not in collections:
            collection = MagicMock(name=name)
            collection.find.return_value = []
            collections[name] = collection
        return collections[name]

    session = MagicMock(name="session")
    service.get_collection.side_effect = get_collection
    service.run_in_transaction.side_effect = lambda callback: callback(session)
    service.collections = collections
    service.session = session
    return service


@pytest.fixture
def stale_time():
    """Creation time just outside the edit window."""
    return NOW - timedelta(minutes=61)
