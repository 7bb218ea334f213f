"""In-memory store implementations.

These back tests and embedders that do not need durable persistence. The
transaction store enforces the same uniqueness rule a database would: one
generated row per (template, year, month).
"""

from collections.abc import Callable, Mapping
from dataclasses import fields, replace
from datetime import UTC, date, datetime
from itertools import count
from typing import Any

import structlog

from fortuna.domain import RecurringTransaction, Transaction, TransactionSource
from fortuna.errors import DuplicateProjectionError, TemplateNotFoundError

logger = structlog.get_logger(__name__)

_TEMPLATE_FIELDS = {f.name for f in fields(RecurringTransaction)}
_IMMUTABLE_TEMPLATE_FIELDS = {"id", "workspace_id", "created_at", "updated_at", "deleted_at"}


class InMemoryTemplateStore:
    """Template store keyed by (workspace_id, template_id)."""

    def __init__(self) -> None:
        self._templates: dict[tuple[int, int], RecurringTransaction] = {}

    def _next_id(self) -> int:
        return max((tid for _, tid in self._templates), default=0) + 1

    def add(self, template: RecurringTransaction) -> RecurringTransaction:
        """Insert a template synchronously, keeping its id when already set."""
        if template.id is None:
            template.id = self._next_id()
        self._templates[(template.workspace_id, template.id)] = replace(template)
        return replace(template)

    def _get_live(self, workspace_id: int, template_id: int) -> RecurringTransaction:
        template = self._templates.get((workspace_id, template_id))
        if template is None or template.is_deleted:
            raise TemplateNotFoundError(workspace_id, template_id)
        return template

    async def create(self, template: RecurringTransaction) -> RecurringTransaction:
        stored = replace(template, id=self._next_id())
        self._templates[(stored.workspace_id, stored.id)] = stored
        return replace(stored)

    async def get_by_id(self, workspace_id: int, template_id: int) -> RecurringTransaction:
        return replace(self._get_live(workspace_id, template_id))

    async def list_by_workspace(
        self, workspace_id: int, active_only: bool = False
    ) -> list[RecurringTransaction]:
        templates = [
            replace(t)
            for (ws, _), t in sorted(self._templates.items())
            if ws == workspace_id and not t.is_deleted
        ]
        if active_only:
            templates = [t for t in templates if t.is_active]
        return templates

    async def list_active_by_workspace(self, workspace_id: int) -> list[RecurringTransaction]:
        return await self.list_by_workspace(workspace_id, active_only=True)

    async def update_partial(
        self, workspace_id: int, template_id: int, changes: Mapping[str, Any]
    ) -> RecurringTransaction:
        template = self._get_live(workspace_id, template_id)
        unknown = set(changes) - _TEMPLATE_FIELDS
        if unknown:
            raise ValueError(f"Unknown template fields: {sorted(unknown)}")
        editable = {k: v for k, v in changes.items() if k not in _IMMUTABLE_TEMPLATE_FIELDS}
        updated = replace(template, **editable, updated_at=datetime.now(UTC))
        self._templates[(workspace_id, template_id)] = updated
        return replace(updated)

    async def soft_delete(self, workspace_id: int, template_id: int) -> None:
        template = self._get_live(workspace_id, template_id)
        template.deleted_at = datetime.now(UTC)


class InMemoryTransactionStore:
    """Transaction store with a uniqueness index on generated rows."""

    def __init__(self) -> None:
        self._transactions: dict[int, Transaction] = {}
        self._generated_index: dict[tuple[int, int, int, int], int] = {}
        self._ids = count(1)

    @staticmethod
    def _month_key(transaction: Transaction) -> tuple[int, int, int, int] | None:
        if transaction.template_id is None:
            return None
        return (
            transaction.workspace_id,
            transaction.template_id,
            transaction.transaction_date.year,
            transaction.transaction_date.month,
        )

    def _insert(self, transaction: Transaction) -> Transaction:
        key = self._month_key(transaction) if transaction.is_generated else None
        if key is not None and key in self._generated_index:
            raise DuplicateProjectionError(key[1], key[2], key[3])
        stored = replace(transaction, id=next(self._ids))
        self._transactions[stored.id] = stored
        if key is not None:
            self._generated_index[key] = stored.id
        return replace(stored)

    def _remove(self, transaction_id: int) -> None:
        transaction = self._transactions.pop(transaction_id)
        key = self._month_key(transaction)
        if key is not None and self._generated_index.get(key) == transaction_id:
            del self._generated_index[key]

    def add(self, transaction: Transaction) -> Transaction:
        """Insert any transaction synchronously (manual or settled rows)."""
        return self._insert(transaction)

    def mark_paid(self, transaction_id: int) -> None:
        self._transactions[transaction_id].is_paid = True

    @property
    def transactions(self) -> list[Transaction]:
        """Snapshot of every stored row, ordered by id."""
        return [replace(t) for _, t in sorted(self._transactions.items())]

    async def create_generated(self, transaction: Transaction) -> Transaction:
        if transaction.source != TransactionSource.RECURRING or transaction.template_id is None:
            raise ValueError("Generated transactions need a recurring source and template id")
        return self._insert(transaction)

    async def exists_for_template_and_month(
        self, workspace_id: int, template_id: int, year: int, month: int
    ) -> bool:
        return any(
            t.workspace_id == workspace_id
            and t.template_id == template_id
            and t.transaction_date.year == year
            and t.transaction_date.month == month
            for t in self._transactions.values()
        )

    def _delete_where(
        self, workspace_id: int, template_id: int, predicate: Callable[[Transaction], bool]
    ) -> int:
        doomed = [
            t.id
            for t in self._transactions.values()
            if t.workspace_id == workspace_id
            and t.template_id == template_id
            and t.source == TransactionSource.RECURRING
            and not t.is_paid
            and predicate(t)
        ]
        for transaction_id in doomed:
            self._remove(transaction_id)
        if doomed:
            logger.debug(
                "generated_transactions_deleted",
                workspace_id=workspace_id,
                template_id=template_id,
                count=len(doomed),
            )
        return len(doomed)

    async def delete_generated_after(
        self, workspace_id: int, template_id: int, after: date
    ) -> int:
        return self._delete_where(
            workspace_id,
            template_id,
            lambda t: t.is_projected and t.transaction_date > after,
        )

    async def delete_future_for_template(
        self, workspace_id: int, template_id: int, from_date: date
    ) -> int:
        return self._delete_where(
            workspace_id, template_id, lambda t: t.transaction_date >= from_date
        )

    async def list_for_template(self, workspace_id: int, template_id: int) -> list[Transaction]:
        """Rows generated from one template, oldest first."""
        rows = [
            replace(t)
            for t in self._transactions.values()
            if t.workspace_id == workspace_id and t.template_id == template_id
        ]
        return sorted(rows, key=lambda t: (t.transaction_date, t.id or 0))


class InMemoryWorkspaceDirectory:
    """Workspace directory backed by an ordered set of ids."""

    def __init__(self, workspace_ids: list[int] | None = None) -> None:
        self._workspace_ids: list[int] = list(dict.fromkeys(workspace_ids or []))

    def add_workspace(self, workspace_id: int) -> None:
        if workspace_id not in self._workspace_ids:
            self._workspace_ids.append(workspace_id)

    async def list_all_workspace_ids(self) -> list[int]:
        return list(self._workspace_ids)


class InMemoryAccountDirectory:
    """Account and category registry scoped per workspace."""

    def __init__(self) -> None:
        self._accounts: set[tuple[int, int]] = set()
        self._categories: set[tuple[int, int]] = set()

    def add_account(self, workspace_id: int, account_id: int) -> None:
        self._accounts.add((workspace_id, account_id))

    def remove_account(self, workspace_id: int, account_id: int) -> None:
        self._accounts.discard((workspace_id, account_id))

    def add_category(self, workspace_id: int, category_id: int) -> None:
        self._categories.add((workspace_id, category_id))

    async def account_exists(self, workspace_id: int, account_id: int) -> bool:
        return (workspace_id, account_id) in self._accounts

    async def category_exists(self, workspace_id: int, category_id: int) -> bool:
        return (workspace_id, category_id) in self._categories
