"""Domain models for recurring templates and the transactions they generate."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class TransactionType(str, Enum):
    """Direction of a money movement."""

    INCOME = "income"
    EXPENSE = "expense"


class Frequency(str, Enum):
    """Recurrence cadence of a template."""

    MONTHLY = "monthly"


class TransactionSource(str, Enum):
    """Where a transaction came from."""

    MANUAL = "manual"
    RECURRING = "recurring"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class RecurringTransaction:
    """A recurring template describing one monthly obligation."""

    workspace_id: int
    name: str
    amount: Decimal
    account_id: int
    type: TransactionType
    due_day: int
    start_date: date
    frequency: Frequency = Frequency.MONTHLY
    category_id: int | None = None
    end_date: date | None = None  # inclusive; None runs forever
    is_active: bool = True
    id: int | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize template for API responses."""
        return {
            "id": self.id,
            "workspaceId": self.workspace_id,
            "name": self.name,
            "amount": str(self.amount),
            "accountId": self.account_id,
            "type": self.type.value,
            "categoryId": self.category_id,
            "frequency": self.frequency.value,
            "dueDay": self.due_day,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "isActive": self.is_active,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class Transaction:
    """A concrete dated money movement."""

    workspace_id: int
    account_id: int
    name: str
    amount: Decimal
    type: TransactionType
    transaction_date: date
    category_id: int | None = None
    source: TransactionSource = TransactionSource.MANUAL
    template_id: int | None = None
    is_projected: bool = False
    is_paid: bool = False
    id: int | None = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def is_generated(self) -> bool:
        """True for rows materialized from a recurring template."""
        return self.source == TransactionSource.RECURRING and self.template_id is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "workspaceId": self.workspace_id,
            "accountId": self.account_id,
            "name": self.name,
            "amount": str(self.amount),
            "type": self.type.value,
            "transactionDate": self.transaction_date.isoformat(),
            "categoryId": self.category_id,
            "source": self.source.value,
            "templateId": self.template_id,
            "isProjected": self.is_projected,
            "isPaid": self.is_paid,
        }
