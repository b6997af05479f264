# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Persistence and side effects.
"""

from .mongodb import MongoDBService, get_mongodb_service, close_mongodb_connection
from .incidents import (
    IncidentRepository,
    IncidentService,
    IncidentServiceError,
    IncidentNotFoundError,
    IncidentAccessDeniedError,
    IncidentValidationError
)

__all__ = [
    "MongoDBService",
    "get_mongodb_service",
    "close_mongodb_connection",
    "IncidentRepository",
    "IncidentService",
    "IncidentServiceError",
    "IncidentNotFoundError",
    "IncidentAccessDeniedError",
    "IncidentValidationError"
]
