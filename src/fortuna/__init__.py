"""Fortuna - recurring-transaction projection engine."""

__version__ = "0.1.0"

from fortuna.config import configure_logging, get_settings
from fortuna.dates import calculate_actual_due_date
from fortuna.domain import (
    Frequency,
    RecurringTransaction,
    Transaction,
    TransactionSource,
    TransactionType,
)
from fortuna.events import EventPublisher, EventType, ProjectionEvent
from fortuna.projections import (
    DEFAULT_PROJECTION_MONTHS,
    OutcomeKind,
    ProjectionError,
    ProjectionGenerator,
    ProjectionOutcome,
    ProjectionRunResult,
)
from fortuna.templates import (
    CreateTemplateInput,
    RecurringTemplateService,
    UpdateTemplateInput,
)
from fortuna.worker import ProjectionWorker, ProjectionWorkerConfig

__all__ = [
    # Version
    "__version__",
    # Domain
    "Frequency",
    "RecurringTransaction",
    "Transaction",
    "TransactionSource",
    "TransactionType",
    "calculate_actual_due_date",
    # Templates
    "RecurringTemplateService",
    "CreateTemplateInput",
    "UpdateTemplateInput",
    # Projections
    "DEFAULT_PROJECTION_MONTHS",
    "ProjectionGenerator",
    "ProjectionRunResult",
    "ProjectionOutcome",
    "ProjectionError",
    "OutcomeKind",
    # Worker
    "ProjectionWorker",
    "ProjectionWorkerConfig",
    # Events
    "EventPublisher",
    "EventType",
    "ProjectionEvent",
    # Config
    "get_settings",
    "configure_logging",
]
