# SPDX-License-Identifier: Apache-2.0

"""
Incident persistence and orchestration.

IncidentRepository maps incidents and their relations to MongoDB
collections and performs every write inside one transaction.
IncidentService checks access, runs the domain workflow and persists the
result, raising service errors for the surrounding layer to map.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from opentelemetry import trace
from pymongo.client_session import ClientSession

from domain.authorization import build_incident_permissions, is_admin
from domain.incidents import (
    IncidentFilters,
    WorkflowResult,
    archive_incident,
    archived_incidents,
    change_incident_status,
    create_incident,
    estimate_archive_size_mb,
    filter_incidents,
    unarchive_incident,
    update_incident,
    validate_deletion,
    validate_purge,
    apply_infrastructure_status,
    apply_population_data,
)
from domain.population import IncidentMetrics, build_incident_report, compute_incident_metrics
from domain.statistics import (
    BarangayAnalytics,
    MunicipalSummary,
    resolve_date_range,
    rollup_barangay_analytics,
    rollup_by_barangay,
    rollup_municipal,
    scope_incidents,
    summarize_barangays,
    summarize_infrastructure,
)
from models.entities import (
    Incident,
    InfrastructureStatus,
    PopulationData,
    Reporter,
    UserContext,
)
from models.enums import DateRangePreset, IncidentStatus, UserRole
from .mongodb import (
    INCIDENTS,
    INCIDENT_FAMILIES,
    INCIDENT_FAMILY_MEMBERS,
    INFRASTRUCTURE_STATUSES,
    POPULATION_DATA,
    USERS,
    MongoDBService,
    get_mongodb_service,
)

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

# Relations live in their own collections.
RELATION_FIELDS = {'id', 'reporter', 'families', 'population_data', 'infrastructure_status'}


class IncidentServiceError(Exception):
    """Base error for incident service operations."""
    pass


class IncidentNotFoundError(IncidentServiceError):
    """Raised when an incident does not exist."""
    pass


class IncidentAccessDeniedError(IncidentServiceError):
    """Raised when the actor may not perform the operation."""
    pass


class IncidentValidationError(IncidentServiceError):
    """Raised when a request fails business validation."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


def _to_document(data: Dict[str, Any], entity_id: str) -> Dict[str, Any]:
    document = dict(data)
    document['_id'] = entity_id
    return document


def _from_document(document: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(document)
    data['id'] = str(data.pop('_id'))
    return data


def _reporter_from_document(document: Dict[str, Any]) -> Reporter:
    return Reporter(
        id=str(document['_id']),
        name=document.get('name'),
        email=document.get('email'),
        role=document.get('role', UserRole.BARANGAY.value),
        barangay_name=document.get('barangay_name'),
        municipality=document.get('municipality')
    )


class IncidentRepository:
    """Loads incidents with all relations and writes them transactionally."""

    def __init__(self, mongodb_service: Optional[MongoDBService] = None):
        self.mongodb = mongodb_service or get_mongodb_service()

    @property
    def incidents(self):
        return self.mongodb.get_collection(INCIDENTS)

    @property
    def families(self):
        return self.mongodb.get_collection(INCIDENT_FAMILIES)

    @property
    def members(self):
        return self.mongodb.get_collection(INCIDENT_FAMILY_MEMBERS)

    @property
    def population_data(self):
        return self.mongodb.get_collection(POPULATION_DATA)

    @property
    def infrastructure_statuses(self):
        return self.mongodb.get_collection(INFRASTRUCTURE_STATUSES)

    @property
    def users(self):
        return self.mongodb.get_collection(USERS)

    # Reads

    def load_incidents(self, query: Optional[Dict[str, Any]] = None) -> List[Incident]:
        """
        Load incidents matching a query with every relation attached.

        Args:
            query: MongoDB filter on the incidents collection

        Returns:
            Incidents with reporter, families, members, population data and
            infrastructure status loaded
        """
        incident_docs = list(self.incidents.find(query or {}))
        if not incident_docs:
            return []

        incident_ids = [doc['_id'] for doc in incident_docs]
        scope = {'incident_id': {'$in': incident_ids}}

        members_by_family = defaultdict(list)
        for doc in self.members.find(scope):
            members_by_family[doc['family_id']].append(_from_document(doc))

        families_by_incident = defaultdict(list)
        for doc in self.families.find(scope):
            family = _from_document(doc)
            family['members'] = members_by_family.get(family['id'], [])
            families_by_incident[family['incident_id']].append(family)

        population_by_incident = {
            doc['incident_id']: _from_document(doc) for doc in self.population_data.find(scope)
        }
        infrastructure_by_incident = {
            doc['incident_id']: _from_document(doc) for doc in self.infrastructure_statuses.find(scope)
        }
        reporters = self._load_reporters({doc['reported_by'] for doc in incident_docs})

        incidents = []
        for doc in incident_docs:
            data = _from_document(doc)
            data['families'] = sorted(
                families_by_incident.get(data['id'], []),
                key=lambda family: family['family_number']
            )
            data['population_data'] = population_by_incident.get(data['id'])
            data['infrastructure_status'] = infrastructure_by_incident.get(data['id'])
            data['reporter'] = reporters.get(data['reported_by'])

            try:
                incidents.append(Incident.model_validate(data))
            except ValueError as e:
                logger.error(f"Stored incident {data['id']} failed validation: {e}")
                raise

        logger.debug(f"Loaded {len(incidents)} incidents")
        return incidents

    def load_incident(self, incident_id: str) -> Optional[Incident]:
        """Load one incident with its relations, or None."""
        incidents = self.load_incidents({'_id': incident_id})
        return incidents[0] if incidents else None

    def _load_reporters(self, user_ids) -> Dict[str, Reporter]:
        # Users may be stored with ObjectId or string identifiers.
        lookup = list(user_ids) + [ObjectId(user_id) for user_id in user_ids if ObjectId.is_valid(user_id)]
        return {
            str(doc['_id']): _reporter_from_document(doc)
            for doc in self.users.find({'_id': {'$in': lookup}})
        }

    # Writes

    def _roster_documents(self, incident: Incident):
        family_docs = []
        member_docs = []
        for family in incident.families:
            family_docs.append(_to_document(family.model_dump(exclude={'id', 'members'}), family.id))
            for member in family.members:
                member_data = member.model_dump(exclude={'id'})
                member_data['incident_id'] = incident.id
                member_docs.append(_to_document(member_data, member.id))
        return family_docs, member_docs

    def _incident_document(self, incident: Incident) -> Dict[str, Any]:
        return _to_document(incident.model_dump(exclude=RELATION_FIELDS), incident.id)

    def _insert_roster(self, incident: Incident, session: ClientSession) -> None:
        family_docs, member_docs = self._roster_documents(incident)
        if family_docs:
            self.families.insert_many(family_docs, session=session)
        if member_docs:
            self.members.insert_many(member_docs, session=session)

    def insert_incident_with_roster(self, incident: Incident) -> Incident:
        """Insert a new incident and its family roster in one transaction."""

        def callback(session: ClientSession):
            self.incidents.insert_one(self._incident_document(incident), session=session)
            self._insert_roster(incident, session)
            return incident

        try:
            result = self.mongodb.run_in_transaction(callback)
            logger.info(
                f"Created incident {incident.id}",
                extra={"incident_id": incident.id, "families": len(incident.families)}
            )
            return result
        except Exception as e:
            logger.error(f"Failed to create incident {incident.id}: {e}")
            raise

    def save_incident_with_roster(self, incident: Incident) -> Incident:
        """
        Save incident fields and replace its whole family roster.

        The incident update, the roster deletion and the roster insertion
        run in one transaction; a failure in any of them leaves the stored
        incident untouched.
        """

        def callback(session: ClientSession):
            scope = {'incident_id': incident.id}
            self.incidents.replace_one({'_id': incident.id}, self._incident_document(incident), session=session)
            self.members.delete_many(scope, session=session)
            self.families.delete_many(scope, session=session)
            self._insert_roster(incident, session)
            return incident

        try:
            result = self.mongodb.run_in_transaction(callback)
            logger.info(
                f"Replaced roster of incident {incident.id}",
                extra={"incident_id": incident.id, "families": len(incident.families)}
            )
            return result
        except Exception as e:
            logger.error(f"Failed to save incident {incident.id} with roster: {e}")
            raise

    def save_incident(self, incident: Incident) -> Incident:
        """Save incident top-level fields."""

        def callback(session: ClientSession):
            self.incidents.replace_one({'_id': incident.id}, self._incident_document(incident), session=session)
            return incident

        try:
            return self.mongodb.run_in_transaction(callback)
        except Exception as e:
            logger.error(f"Failed to save incident {incident.id}: {e}")
            raise

    def upsert_population_data(self, population_data: PopulationData) -> PopulationData:
        """Create or replace the population summary of an incident."""

        def callback(session: ClientSession):
            self.population_data.replace_one(
                {'incident_id': population_data.incident_id},
                _to_document(population_data.model_dump(exclude={'id'}), population_data.id),
                upsert=True,
                session=session
            )
            return population_data

        try:
            return self.mongodb.run_in_transaction(callback)
        except Exception as e:
            logger.error(f"Failed to save population data for incident {population_data.incident_id}: {e}")
            raise

    def upsert_infrastructure_status(self, infrastructure_status: InfrastructureStatus) -> InfrastructureStatus:
        """Create or replace the infrastructure status of an incident."""

        def callback(session: ClientSession):
            self.infrastructure_statuses.replace_one(
                {'incident_id': infrastructure_status.incident_id},
                _to_document(infrastructure_status.model_dump(exclude={'id'}), infrastructure_status.id),
                upsert=True,
                session=session
            )
            return infrastructure_status

        try:
            return self.mongodb.run_in_transaction(callback)
        except Exception as e:
            logger.error(
                f"Failed to save infrastructure status for incident {infrastructure_status.incident_id}: {e}"
            )
            raise

    def purge_incidents(self, incident_ids: List[str]) -> int:
        """
        Permanently delete incidents with all their related records.

        Args:
            incident_ids: Incidents to delete

        Returns:
            Number of incidents deleted
        """

        def callback(session: ClientSession):
            scope = {'incident_id': {'$in': incident_ids}}
            self.members.delete_many(scope, session=session)
            self.families.delete_many(scope, session=session)
            self.population_data.delete_many(scope, session=session)
            self.infrastructure_statuses.delete_many(scope, session=session)
            result = self.incidents.delete_many({'_id': {'$in': incident_ids}}, session=session)
            return result.deleted_count

        try:
            deleted = self.mongodb.run_in_transaction(callback)
            logger.warning(f"Permanently deleted {deleted} incidents", extra={"incident_ids": incident_ids})
            return deleted
        except Exception as e:
            logger.error(f"Failed to purge incidents {incident_ids}: {e}")
            raise


class IncidentService:
    """Incident operations gated by the access policy."""

    def __init__(self, repository: Optional[IncidentRepository] = None):
        self.repository = repository or IncidentRepository()

    def _require_incident(self, incident_id: str) -> Incident:
        incident = self.repository.load_incident(incident_id)
        if incident is None:
            raise IncidentNotFoundError(f"Incident {incident_id} not found")
        return incident

    @staticmethod
    def _raise_for_result(result: WorkflowResult) -> None:
        if result.success:
            return
        if result.access_denied:
            raise IncidentAccessDeniedError(result.error_message or "Access denied")
        raise IncidentValidationError(result.error_message or "Validation failed", result.validation_errors)

    @staticmethod
    def _scope_query(user_context: UserContext) -> Dict[str, Any]:
        if user_context is not None and user_context.has_role(UserRole.BARANGAY):
            return {'reported_by': user_context.user_id}
        return {}

    # Queries

    def get_incident(self, incident_id: str) -> Incident:
        with tracer.start_as_current_span("incidents.get") as span:
            span.set_attribute("incident.id", incident_id)
            return self._require_incident(incident_id)

    def get_permissions(self, incident_id: str, user_context: UserContext,
                        now: Optional[datetime] = None) -> Dict[str, bool]:
        with tracer.start_as_current_span("incidents.permissions") as span:
            span.set_attribute("incident.id", incident_id)
            incident = self._require_incident(incident_id)
            return build_incident_permissions(user_context, incident, now)

    def list_incidents(self, user_context: UserContext,
                       filters: Optional[IncidentFilters] = None) -> List[Incident]:
        """
        List incidents visible to an actor.

        Args:
            user_context: Requesting actor
            filters: Optional filter criteria; archived incidents are hidden
                unless requested

        Returns:
            Matching incidents, newest first
        """
        with tracer.start_as_current_span("incidents.list") as span:
            span.set_attribute("user.role", str(getattr(user_context, 'role', None)))

            incidents = self.repository.load_incidents(self._scope_query(user_context))
            visible = scope_incidents(user_context, incidents)
            filtered = filter_incidents(visible, filters or IncidentFilters())

            span.set_attribute("incidents.count", len(filtered))
            return sorted(filtered, key=lambda incident: incident.created_at, reverse=True)

    def list_archived_incidents(self, user_context: UserContext) -> Dict[str, Any]:
        """List archived incidents with a storage estimate. Admin only."""
        if not is_admin(user_context):
            raise IncidentAccessDeniedError("Only administrators can view archived incidents")

        incidents = archived_incidents(
            self.repository.load_incidents({'status': IncidentStatus.ARCHIVED.value})
        )
        return {
            'incidents': incidents,
            'total': len(incidents),
            'estimated_size_mb': estimate_archive_size_mb(incidents),
        }

    def get_incident_metrics(self, incident_id: str) -> IncidentMetrics:
        with tracer.start_as_current_span("incidents.metrics") as span:
            span.set_attribute("incident.id", incident_id)
            return compute_incident_metrics(self._require_incident(incident_id))

    def get_incident_report(self, incident_id: str) -> Dict[str, Any]:
        with tracer.start_as_current_span("incidents.report") as span:
            span.set_attribute("incident.id", incident_id)
            return build_incident_report(self._require_incident(incident_id))

    # Mutations

    def create_incident(self, payload: Dict[str, Any], user_context: UserContext) -> Incident:
        """
        Create an incident together with its family roster.

        Raises:
            IncidentAccessDeniedError: If the actor may not report incidents
            IncidentValidationError: If the payload or roster is invalid
        """
        with tracer.start_as_current_span("incidents.create") as span:
            span.set_attribute("user.id", getattr(user_context, 'user_id', '') or '')

            result = create_incident(payload, user_context)
            self._raise_for_result(result)

            for warning in result.warnings:
                logger.warning(warning, extra={"incident_id": result.incident.id})

            span.set_attribute("incident.id", result.incident.id)
            return self.repository.insert_incident_with_roster(result.incident)

    def update_incident(self, incident_id: str, payload: Dict[str, Any],
                        user_context: UserContext) -> Incident:
        """
        Update an incident, replacing its roster when one is supplied.

        Raises:
            IncidentNotFoundError: If the incident does not exist
            IncidentAccessDeniedError: If the actor may not edit it
            IncidentValidationError: If the update is invalid
        """
        with tracer.start_as_current_span("incidents.update") as span:
            span.set_attribute("incident.id", incident_id)

            incident = self._require_incident(incident_id)
            result = update_incident(incident, payload, user_context)
            self._raise_for_result(result)

            for warning in result.warnings:
                logger.warning(warning, extra={"incident_id": incident_id})

            if payload.get('families') is not None:
                span.set_attribute("incident.roster_replaced", True)
                return self.repository.save_incident_with_roster(result.incident)
            return self.repository.save_incident(result.incident)

    def change_status(self, incident_id: str, new_status: IncidentStatus, user_context: UserContext,
                      admin_notes: Optional[str] = None, force: bool = False) -> Incident:
        with tracer.start_as_current_span("incidents.change_status") as span:
            span.set_attributes({
                "incident.id": incident_id,
                "incident.new_status": str(getattr(new_status, 'value', new_status)),
                "incident.force": force
            })

            incident = self._require_incident(incident_id)
            result = change_incident_status(incident, new_status, user_context, admin_notes, force)
            self._raise_for_result(result)

            logger.info(
                f"Incident {incident_id} status changed from {incident.status} to {result.incident.status}",
                extra={"incident_id": incident_id, "user_id": user_context.user_id}
            )
            return self.repository.save_incident(result.incident)

    def archive_incident(self, incident_id: str, reason: str, user_context: UserContext) -> Incident:
        with tracer.start_as_current_span("incidents.archive") as span:
            span.set_attribute("incident.id", incident_id)

            incident = self._require_incident(incident_id)
            result = archive_incident(incident, reason, user_context)
            self._raise_for_result(result)

            logger.info(f"Incident {incident_id} archived", extra={"incident_id": incident_id})
            return self.repository.save_incident(result.incident)

    def unarchive_incident(self, incident_id: str, reason: str, user_context: UserContext,
                           new_status: Optional[IncidentStatus] = None) -> Incident:
        with tracer.start_as_current_span("incidents.unarchive") as span:
            span.set_attribute("incident.id", incident_id)

            incident = self._require_incident(incident_id)
            result = unarchive_incident(incident, reason, user_context, new_status)
            self._raise_for_result(result)

            logger.info(
                f"Incident {incident_id} unarchived to {result.archive_episode.new_status}",
                extra={"incident_id": incident_id}
            )
            return self.repository.save_incident(result.incident)

    def delete_incident(self, incident_id: str, user_context: UserContext) -> None:
        with tracer.start_as_current_span("incidents.delete") as span:
            span.set_attribute("incident.id", incident_id)

            incident = self._require_incident(incident_id)
            validation = validate_deletion(incident, user_context)
            if not validation.is_valid:
                message = "; ".join(validation.errors)
                if is_admin(user_context):
                    raise IncidentValidationError(message, validation.errors)
                raise IncidentAccessDeniedError(message)

            self.repository.purge_incidents([incident_id])

    def purge_incidents(self, incident_ids: List[str], user_context: UserContext) -> Dict[str, Any]:
        """
        Permanently delete archived incidents.

        Raises:
            IncidentNotFoundError: If any incident does not exist
            IncidentAccessDeniedError: If the actor is not an administrator
            IncidentValidationError: If any incident is not archived
        """
        with tracer.start_as_current_span("incidents.purge") as span:
            span.set_attribute("incidents.requested", len(incident_ids))

            if not is_admin(user_context):
                raise IncidentAccessDeniedError("Only administrators can permanently delete incidents")

            incidents = self.repository.load_incidents({'_id': {'$in': list(incident_ids)}})
            missing = set(incident_ids) - {incident.id for incident in incidents}
            if missing:
                raise IncidentNotFoundError(f"Incidents not found: {', '.join(sorted(missing))}")

            validation = validate_purge(incidents, user_context)
            if not validation.is_valid:
                raise IncidentValidationError("Purge validation failed", validation.errors)

            estimated_size = estimate_archive_size_mb(incidents)
            deleted = self.repository.purge_incidents(list(incident_ids))

            span.set_attribute("incidents.deleted", deleted)
            return {'deleted_count': deleted, 'freed_size_mb': estimated_size}

    def save_population_data(self, incident_id: str, payload: Dict[str, Any],
                             user_context: UserContext) -> PopulationData:
        with tracer.start_as_current_span("incidents.save_population_data") as span:
            span.set_attribute("incident.id", incident_id)

            incident = self._require_incident(incident_id)
            result = apply_population_data(incident, payload, user_context)
            self._raise_for_result(result)

            for warning in result.warnings:
                logger.warning(warning, extra={"incident_id": incident_id})

            return self.repository.upsert_population_data(result.incident.population_data)

    def save_infrastructure_status(self, incident_id: str, payload: Dict[str, Any],
                                   user_context: UserContext) -> InfrastructureStatus:
        with tracer.start_as_current_span("incidents.save_infrastructure_status") as span:
            span.set_attribute("incident.id", incident_id)

            incident = self._require_incident(incident_id)
            result = apply_infrastructure_status(incident, payload, user_context)
            self._raise_for_result(result)

            return self.repository.upsert_infrastructure_status(result.incident.infrastructure_status)

    # Statistics

    def _load_in_range(self, user_context: UserContext, date_range: DateRangePreset,
                       now: Optional[datetime] = None) -> List[Incident]:
        start, end = resolve_date_range(date_range, now)
        query = self._scope_query(user_context)
        query['created_at'] = {'$gte': start, '$lte': end}
        return self.repository.load_incidents(query)

    def municipal_summary(self, user_context: UserContext,
                          date_range: DateRangePreset = DateRangePreset.LAST_6_MONTHS,
                          barangay_names: Optional[List[str]] = None,
                          now: Optional[datetime] = None) -> MunicipalSummary:
        """Municipal rollup over the selected range. Admin only."""
        with tracer.start_as_current_span("statistics.municipal") as span:
            if not is_admin(user_context):
                raise IncidentAccessDeniedError("Only administrators can view municipal statistics")

            incidents = scope_incidents(
                user_context, self._load_in_range(user_context, date_range, now), barangay_names
            )
            span.set_attribute("incidents.count", len(incidents))
            return rollup_municipal(incidents)

    def barangay_rollup(self, user_context: UserContext,
                        date_range: DateRangePreset = DateRangePreset.ALL_TIME,
                        now: Optional[datetime] = None) -> Dict[str, IncidentMetrics]:
        with tracer.start_as_current_span("statistics.barangay_rollup") as span:
            incidents = scope_incidents(user_context, self._load_in_range(user_context, date_range, now))
            span.set_attribute("incidents.count", len(incidents))
            return rollup_by_barangay(incidents)

    def barangay_analytics(self, user_context: UserContext,
                           date_range: DateRangePreset = DateRangePreset.LAST_6_MONTHS,
                           now: Optional[datetime] = None) -> BarangayAnalytics:
        """Self-service analytics over the actor's own reports. Barangay users only."""
        with tracer.start_as_current_span("statistics.barangay") as span:
            if user_context is None or not user_context.has_role(UserRole.BARANGAY):
                raise IncidentAccessDeniedError("Barangay analytics are available to barangay users only")

            analytics = rollup_barangay_analytics(
                user_context, self._load_in_range(user_context, date_range, now)
            )
            span.set_attribute("incidents.count", analytics.total_incidents)
            return analytics

    def population_overview(self, user_context: UserContext) -> Dict[str, Any]:
        with tracer.start_as_current_span("statistics.population_overview") as span:
            if not is_admin(user_context):
                raise IncidentAccessDeniedError("Only administrators can view the municipal population overview")

            incidents = self.repository.load_incidents()
            span.set_attribute("incidents.count", len(incidents))
            return summarize_barangays(incidents)

    def infrastructure_summary(self, user_context: UserContext,
                               date_range: DateRangePreset = DateRangePreset.ALL_TIME,
                               now: Optional[datetime] = None) -> Dict[str, int]:
        with tracer.start_as_current_span("statistics.infrastructure") as span:
            incidents = scope_incidents(user_context, self._load_in_range(user_context, date_range, now))
            span.set_attribute("incidents.count", len(incidents))
            return summarize_infrastructure(incidents)
