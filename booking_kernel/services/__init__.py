"""Services for the booking kernel (write side)."""

from booking_kernel.services.activity_log import ActivityLog
from booking_kernel.services.availability_ledger import AvailabilityLedger
from booking_kernel.services.booking_service import BookingService
from booking_kernel.services.contract_generator import MonthlyContractGenerator
from booking_kernel.services.contract_link_service import ContractLinkService
from booking_kernel.services.email import (
    EmailDispatcher,
    LoggingEmailDispatcher,
    SmtpEmailDispatcher,
    build_email_dispatcher,
)
from booking_kernel.services.invoice_service import InvoiceAggregator
from booking_kernel.services.monthly_contract_service import MonthlyContractService
from booking_kernel.services.saga import SagaResult, SagaRunner, SagaStep
from booking_kernel.services.status_service import EntityStatusService
from booking_kernel.services.synchronizer import ConsistencySynchronizer, TransitionEvent

__all__ = [
    "ActivityLog",
    "AvailabilityLedger",
    "BookingService",
    "ConsistencySynchronizer",
    "ContractLinkService",
    "EmailDispatcher",
    "EntityStatusService",
    "InvoiceAggregator",
    "LoggingEmailDispatcher",
    "MonthlyContractGenerator",
    "MonthlyContractService",
    "SagaResult",
    "SagaRunner",
    "SagaStep",
    "SmtpEmailDispatcher",
    "TransitionEvent",
    "build_email_dispatcher",
]
