"""Services package - Business logic layer."""

from app.services.schedule_store import ScheduleStore
from app.services.availability_service import AvailabilityService
from app.services.appointment_service import AppointmentService
from app.services.bulk_mutation_service import BulkMutationService
from app.services.appointment_management_service import AppointmentManagementService
from app.services.recommendation_service import RecommendationService, ScoringClient, rank_candidates
from app.services.payment_service import PaymentConfirmationBroker, payment_broker

__all__ = [
    "ScheduleStore",
    "AvailabilityService",
    "AppointmentService",
    "BulkMutationService",
    "AppointmentManagementService",
    "RecommendationService",
    "ScoringClient",
    "rank_candidates",
    "PaymentConfirmationBroker",
    "payment_broker",
]
