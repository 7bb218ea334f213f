"""Store interfaces consumed by the projection engine.

Persistence lives outside this package; anything implementing these
protocols can back the template service, the generator and the worker.
Every lookup is scoped by workspace id and signals absence with a
``NotFoundError`` subclass.
"""

from collections.abc import Mapping
from datetime import date
from typing import Any, Protocol

from fortuna.domain import RecurringTransaction, Transaction


class TemplateStore(Protocol):
    """Persists recurring templates."""

    async def create(self, template: RecurringTransaction) -> RecurringTransaction: ...

    async def get_by_id(self, workspace_id: int, template_id: int) -> RecurringTransaction:
        """Raises TemplateNotFoundError for unknown or soft-deleted ids."""
        ...

    async def list_by_workspace(
        self, workspace_id: int, active_only: bool = False
    ) -> list[RecurringTransaction]: ...

    async def list_active_by_workspace(self, workspace_id: int) -> list[RecurringTransaction]: ...

    async def update_partial(
        self, workspace_id: int, template_id: int, changes: Mapping[str, Any]
    ) -> RecurringTransaction: ...

    async def soft_delete(self, workspace_id: int, template_id: int) -> None: ...


class TransactionStore(Protocol):
    """Persists transactions, including generated projections."""

    async def create_generated(self, transaction: Transaction) -> Transaction:
        """Raises DuplicateProjectionError if the template already has a row that month."""
        ...

    async def exists_for_template_and_month(
        self, workspace_id: int, template_id: int, year: int, month: int
    ) -> bool: ...

    async def delete_generated_after(
        self, workspace_id: int, template_id: int, after: date
    ) -> int:
        """Delete unpaid projections dated strictly after ``after``."""
        ...

    async def delete_future_for_template(
        self, workspace_id: int, template_id: int, from_date: date
    ) -> int:
        """Delete unpaid generated rows dated on or after ``from_date``."""
        ...


class WorkspaceDirectory(Protocol):
    """Enumerates tenants for the scheduler."""

    async def list_all_workspace_ids(self) -> list[int]: ...


class AccountDirectory(Protocol):
    """Existence checks for records a template references."""

    async def account_exists(self, workspace_id: int, account_id: int) -> bool: ...

    async def category_exists(self, workspace_id: int, category_id: int) -> bool: ...
