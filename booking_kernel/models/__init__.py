"""ORM models for the booking kernel.

Importing this package registers every table on ``Base.metadata``.
"""

from booking_kernel.models.audit import ActivityModel, EntityStatusModel, SagaDeadLetterModel
from booking_kernel.models.booking import BookingModel, InvitationModel
from booking_kernel.models.contract import (
    ContractDateModel,
    ContractLinkModel,
    ContractMusicianModel,
    ContractStatusHistoryModel,
    MonthlyContractModel,
)
from booking_kernel.models.ledger import AvailabilityModel, MonthlyInvoiceModel
from booking_kernel.models.planner import (
    MonthlyPlannerModel,
    PlannerAssignmentModel,
    PlannerSlotModel,
)
from booking_kernel.models.reference import MusicianModel, PayRateModel, VenueModel

ALL_MODELS = (
    MusicianModel,
    PayRateModel,
    VenueModel,
    MonthlyPlannerModel,
    PlannerSlotModel,
    PlannerAssignmentModel,
    InvitationModel,
    BookingModel,
    ContractLinkModel,
    MonthlyContractModel,
    ContractMusicianModel,
    ContractDateModel,
    ContractStatusHistoryModel,
    AvailabilityModel,
    MonthlyInvoiceModel,
    ActivityModel,
    EntityStatusModel,
    SagaDeadLetterModel,
)

__all__ = [
    "ALL_MODELS",
    "ActivityModel",
    "AvailabilityModel",
    "BookingModel",
    "ContractDateModel",
    "ContractLinkModel",
    "ContractMusicianModel",
    "ContractStatusHistoryModel",
    "EntityStatusModel",
    "InvitationModel",
    "MonthlyContractModel",
    "MonthlyInvoiceModel",
    "MonthlyPlannerModel",
    "MusicianModel",
    "PayRateModel",
    "PlannerAssignmentModel",
    "PlannerSlotModel",
    "SagaDeadLetterModel",
    "VenueModel",
]
