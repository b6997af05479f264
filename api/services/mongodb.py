# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling and transactions.
"""

import os
import logging
from typing import Callable, Dict, Optional, Any, TypeVar
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Collection names
INCIDENTS = "incidents"
INCIDENT_FAMILIES = "incident_families"
INCIDENT_FAMILY_MEMBERS = "incident_family_members"
POPULATION_DATA = "population_data"
INFRASTRUCTURE_STATUSES = "infrastructure_statuses"
USERS = "users"


class MongoDBService:
    """MongoDB service with connection pooling and transaction support."""

    def __init__(self, connection_string: str = None, database_name: str = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/barangay_incidents_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'barangay_incidents_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            # Ping the database
            result = self.client.admin.command('ping')

            # Get server info
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    def run_in_transaction(self, callback: Callable[[ClientSession], T]) -> T:
        """
        Run a callback inside a single multi-document transaction.

        The callback receives the session and must pass it to every
        operation. Any exception aborts the transaction and propagates.

        Args:
            callback: Function taking the session

        Returns:
            Whatever the callback returns
        """
        with self.client.start_session() as session:
            try:
                return session.with_transaction(callback)
            except Exception as e:
                logger.error(f"MongoDB transaction aborted: {e}")
                raise

    # Index Management

    def create_indexes(self) -> None:
        """Create performance indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            # Incidents indexes
            incidents = self.get_collection(INCIDENTS)
            incidents.create_index([("reported_by", ASCENDING), ("created_at", DESCENDING)])
            incidents.create_index([("status", ASCENDING), ("created_at", DESCENDING)])
            incidents.create_index([("status", ASCENDING), ("archived_at", DESCENDING)])
            incidents.create_index([("barangay", ASCENDING)])
            incidents.create_index([("incident_type", ASCENDING)])
            incidents.create_index([("severity", ASCENDING)])

            # Family roster indexes
            families = self.get_collection(INCIDENT_FAMILIES)
            families.create_index(
                [("incident_id", ASCENDING), ("family_number", ASCENDING)],
                unique=True
            )
            members = self.get_collection(INCIDENT_FAMILY_MEMBERS)
            members.create_index([("incident_id", ASCENDING)])
            members.create_index([("family_id", ASCENDING)])

            # One population summary and one infrastructure record per incident
            population = self.get_collection(POPULATION_DATA)
            population.create_index("incident_id", unique=True)
            infrastructure = self.get_collection(INFRASTRUCTURE_STATUSES)
            infrastructure.create_index("incident_id", unique=True)

            # Users indexes
            users = self.get_collection(USERS)
            users.create_index("email", unique=True)
            users.create_index([("role", ASCENDING), ("barangay_name", ASCENDING)])

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get singleton MongoDB service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service


def close_mongodb_connection() -> None:
    """Close MongoDB connection (for cleanup)."""
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
