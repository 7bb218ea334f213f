"""Recurring template service: validation and CRUD for templates.

Template writes never trigger projection generation. Keeping future
projections in step with template edits is the job of the projection
generator and the background worker.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog

from fortuna.dates import month_start
from fortuna.domain import Frequency, RecurringTransaction, TransactionType
from fortuna.errors import (
    MAX_DUE_DAY,
    MAX_TEMPLATE_NAME_LENGTH,
    MIN_DUE_DAY,
    AccountNotFoundError,
    CategoryNotFoundError,
    InvalidAmountError,
    InvalidDateRangeError,
    InvalidDueDayError,
    InvalidFrequencyError,
    InvalidTransactionTypeError,
    NameRequiredError,
    NameTooLongError,
)
from fortuna.stores.base import AccountDirectory, TemplateStore

logger = structlog.get_logger(__name__)


@dataclass
class CreateTemplateInput:
    """Fields accepted when creating a template."""

    name: str
    amount: Decimal | int | str
    account_id: int
    type: TransactionType | str
    frequency: Frequency | str = Frequency.MONTHLY
    due_day: int | None = None  # defaults to 1
    category_id: int | None = None
    start_date: date | None = None  # defaults to the current month
    end_date: date | None = None


@dataclass
class UpdateTemplateInput:
    """Full overwrite of a template's editable fields."""

    name: str
    amount: Decimal | int | str
    account_id: int
    type: TransactionType | str
    due_day: int
    frequency: Frequency | str = Frequency.MONTHLY
    category_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = True


def _validate_name(name: str) -> str:
    trimmed = (name or "").strip()
    if not trimmed:
        raise NameRequiredError()
    if len(trimmed) > MAX_TEMPLATE_NAME_LENGTH:
        raise NameTooLongError(len(trimmed))
    return trimmed


def _validate_amount(amount: Any) -> Decimal:
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(amount) from e
    if not value.is_finite() or value <= 0:
        raise InvalidAmountError(amount)
    return value


def _validate_type(value: Any) -> TransactionType:
    try:
        return TransactionType(value)
    except ValueError as e:
        raise InvalidTransactionTypeError(value) from e


def _validate_frequency(value: Any) -> Frequency:
    try:
        return Frequency(value)
    except ValueError as e:
        raise InvalidFrequencyError(value) from e


def _validate_due_day(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidDueDayError(value)
    if value < MIN_DUE_DAY or value > MAX_DUE_DAY:
        raise InvalidDueDayError(value)
    return value


class RecurringTemplateService:
    """Validates and manages recurring templates for a workspace."""

    def __init__(
        self,
        templates: TemplateStore,
        accounts: AccountDirectory,
        today: Callable[[], date] = date.today,
    ):
        self._templates = templates
        self._accounts = accounts
        self._today = today
        self._logger = logger.bind(component="recurring_template_service")

    def _resolve_dates(
        self, start_date: date | None, end_date: date | None
    ) -> tuple[date, date | None]:
        start = month_start(start_date or self._today())
        if end_date is not None and end_date < start:
            raise InvalidDateRangeError(start, end_date)
        return start, end_date

    async def _check_references(
        self, workspace_id: int, account_id: int, category_id: int | None
    ) -> None:
        if not await self._accounts.account_exists(workspace_id, account_id):
            raise AccountNotFoundError(workspace_id, account_id)
        if category_id is not None and not await self._accounts.category_exists(
            workspace_id, category_id
        ):
            raise CategoryNotFoundError(workspace_id, category_id)

    async def create(self, workspace_id: int, data: CreateTemplateInput) -> RecurringTransaction:
        """Validate and persist a new active template.

        Args:
            workspace_id: Owning workspace.
            data: Template fields. A missing or zero due day becomes 1.

        Returns:
            The stored template with its assigned id.

        Raises:
            ValidationError: On any invalid field.
            NotFoundError: If the account or category is not in the workspace.
        """
        name = _validate_name(data.name)
        amount = _validate_amount(data.amount)
        tx_type = _validate_type(data.type)
        frequency = _validate_frequency(data.frequency)
        due_day = _validate_due_day(data.due_day or 1)
        start, end = self._resolve_dates(data.start_date, data.end_date)
        await self._check_references(workspace_id, data.account_id, data.category_id)

        template = await self._templates.create(
            RecurringTransaction(
                workspace_id=workspace_id,
                name=name,
                amount=amount,
                account_id=data.account_id,
                type=tx_type,
                category_id=data.category_id,
                frequency=frequency,
                due_day=due_day,
                start_date=start,
                end_date=end,
                is_active=True,
            )
        )
        self._logger.info(
            "template_created",
            workspace_id=workspace_id,
            template_id=template.id,
            due_day=due_day,
        )
        return template

    async def list_templates(
        self, workspace_id: int, active_only: bool = False
    ) -> list[RecurringTransaction]:
        return await self._templates.list_by_workspace(workspace_id, active_only=active_only)

    async def get_by_id(self, workspace_id: int, template_id: int) -> RecurringTransaction:
        return await self._templates.get_by_id(workspace_id, template_id)

    async def update(
        self, workspace_id: int, template_id: int, data: UpdateTemplateInput
    ) -> RecurringTransaction:
        """Overwrite every editable field of an existing template.

        Already materialized projections are left alone; callers that need
        them refreshed follow up with the generator's regenerate operation.
        """
        name = _validate_name(data.name)
        amount = _validate_amount(data.amount)
        tx_type = _validate_type(data.type)
        frequency = _validate_frequency(data.frequency)
        due_day = _validate_due_day(data.due_day)
        start, end = self._resolve_dates(data.start_date, data.end_date)
        await self._check_references(workspace_id, data.account_id, data.category_id)

        template = await self._templates.update_partial(
            workspace_id,
            template_id,
            {
                "name": name,
                "amount": amount,
                "account_id": data.account_id,
                "type": tx_type,
                "category_id": data.category_id,
                "frequency": frequency,
                "due_day": due_day,
                "start_date": start,
                "end_date": end,
                "is_active": data.is_active,
            },
        )
        self._logger.info(
            "template_updated",
            workspace_id=workspace_id,
            template_id=template_id,
            is_active=template.is_active,
        )
        return template

    async def toggle_active(self, workspace_id: int, template_id: int) -> RecurringTransaction:
        existing = await self._templates.get_by_id(workspace_id, template_id)
        return await self._templates.update_partial(
            workspace_id, template_id, {"is_active": not existing.is_active}
        )

    async def delete(self, workspace_id: int, template_id: int) -> None:
        """Soft-delete a template; rows it generated keep their template_id."""
        await self._templates.soft_delete(workspace_id, template_id)
        self._logger.info("template_deleted", workspace_id=workspace_id, template_id=template_id)
