"""Projection generator: materializes recurring templates as dated transactions.

Every (template, month) pair the generator considers resolves to exactly one
tagged ``ProjectionOutcome``; a run's ``ProjectionRunResult`` is the fold of
those outcomes. Failures on one pair are recorded and never abort the batch.

Re-running generation over a window that is already covered creates nothing:
existence is checked before each insert, and a ``DuplicateProjectionError``
raised by the store (a concurrent run won the race) counts as a skip.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

import structlog

from fortuna.dates import calculate_actual_due_date, iter_months, month_start
from fortuna.domain import RecurringTransaction, Transaction, TransactionSource
from fortuna.errors import DuplicateProjectionError
from fortuna.events import EventPublisher, projections_cleaned_up, projections_generated
from fortuna.stores.base import TemplateStore, TransactionStore

logger = structlog.get_logger(__name__)

DEFAULT_PROJECTION_MONTHS = 12


def normalize_months_ahead(months_ahead: int) -> int:
    """Substitute the default horizon for non-positive values."""
    return months_ahead if months_ahead > 0 else DEFAULT_PROJECTION_MONTHS


class OutcomeKind(str, Enum):
    """What happened to one (template, month) pair."""

    GENERATED = "generated"
    SKIPPED_INACTIVE = "skipped_inactive"
    SKIPPED_BEFORE_START = "skipped_before_start"
    SKIPPED_AFTER_END = "skipped_after_end"
    SKIPPED_EXISTING = "skipped_existing"
    FAILED = "failed"


@dataclass(frozen=True)
class ProjectionOutcome:
    """Result of considering one template for one month."""

    kind: OutcomeKind
    template_id: int
    template_name: str
    year: int
    month: int
    reason: str | None = None

    @property
    def is_skipped(self) -> bool:
        return self.kind.value.startswith("skipped")


@dataclass
class ProjectionError:
    """A per-item failure collected into a run result."""

    template_id: int
    template_name: str
    year: int
    month: int
    message: str

    def __str__(self) -> str:
        return (
            f"Failed to project {self.template_name} "
            f"for {self.year}-{self.month:02d}: {self.message}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "templateId": self.template_id,
            "templateName": self.template_name,
            "year": self.year,
            "month": self.month,
            "message": self.message,
        }


@dataclass
class ProjectionRunResult:
    """Summary of one generation invocation."""

    generated: int = 0
    skipped: int = 0
    errors: list[ProjectionError] = field(default_factory=list)

    def record(self, outcome: ProjectionOutcome) -> None:
        """Fold one outcome into the totals."""
        if outcome.kind is OutcomeKind.GENERATED:
            self.generated += 1
        elif outcome.is_skipped:
            self.skipped += 1
        else:
            self.errors.append(
                ProjectionError(
                    template_id=outcome.template_id,
                    template_name=outcome.template_name,
                    year=outcome.year,
                    month=outcome.month,
                    message=outcome.reason or "unknown error",
                )
            )

    def merge(self, other: "ProjectionRunResult") -> None:
        self.generated += other.generated
        self.skipped += other.skipped
        self.errors.extend(other.errors)

    @classmethod
    def fold(cls, outcomes: Iterable[ProjectionOutcome]) -> "ProjectionRunResult":
        result = cls()
        for outcome in outcomes:
            result.record(outcome)
        return result

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        payload: dict[str, Any] = {"generated": self.generated, "skipped": self.skipped}
        if self.errors:
            payload["errors"] = [e.to_dict() for e in self.errors]
        return payload


class ProjectionGenerator:
    """Turns active recurring templates into projected transactions."""

    def __init__(
        self,
        templates: TemplateStore,
        transactions: TransactionStore,
        publisher: EventPublisher | None = None,
        today: Callable[[], date] = date.today,
    ):
        self._templates = templates
        self._transactions = transactions
        self._publisher = publisher
        self._today = today
        self._logger = logger.bind(component="projection_generator")

    # === Generation ===

    async def generate_projections(
        self, workspace_id: int, months_ahead: int = DEFAULT_PROJECTION_MONTHS
    ) -> ProjectionRunResult:
        """Materialize projections for every active template in the workspace.

        The window starts at the current month and spans ``months_ahead``
        months; non-positive values use the default of 12. Templates with an
        end date first lose any unsettled projections dated after it, so a
        shortened end date takes effect on the next sync.

        Args:
            workspace_id: Workspace to generate for.
            months_ahead: Horizon length in months.

        Returns:
            Counts of generated and skipped pairs plus collected errors.
        """
        months_ahead = normalize_months_ahead(months_ahead)
        templates = await self._templates.list_active_by_workspace(workspace_id)
        first_month = month_start(self._today())

        result = ProjectionRunResult()
        for template in templates:
            if template.end_date is not None:
                failure = await self._trim_beyond_end_date(workspace_id, template)
                if failure is not None:
                    result.record(failure)
            outcomes = await self._project_template(
                workspace_id, template, first_month, months_ahead
            )
            result.merge(ProjectionRunResult.fold(outcomes))

        self._logger.debug(
            "projections_generated",
            workspace_id=workspace_id,
            templates=len(templates),
            months_ahead=months_ahead,
            generated=result.generated,
            skipped=result.skipped,
            errors=len(result.errors),
        )
        self._publish_generated(workspace_id, result)
        return result

    async def generate_projections_for_month(
        self, workspace_id: int, year: int, month: int
    ) -> ProjectionRunResult:
        """Materialize projections for exactly one target month."""
        if not 1 <= month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {month}")

        templates = await self._templates.list_active_by_workspace(workspace_id)
        outcomes = [
            await self._project_month(workspace_id, template, year, month)
            for template in templates
        ]
        result = ProjectionRunResult.fold(outcomes)

        self._logger.debug(
            "month_projections_generated",
            workspace_id=workspace_id,
            year=year,
            month=month,
            generated=result.generated,
            skipped=result.skipped,
        )
        self._publish_generated(workspace_id, result)
        return result

    async def regenerate_projections_for_template(
        self,
        workspace_id: int,
        template_id: int,
        months_ahead: int = DEFAULT_PROJECTION_MONTHS,
    ) -> ProjectionRunResult:
        """Replace a template's future projections with freshly derived ones.

        Unpaid generated rows dated today or later are deleted first; past
        and settled rows are untouched. Inactive templates are left alone.

        Raises:
            TemplateNotFoundError: If the template does not exist.
        """
        template = await self._templates.get_by_id(workspace_id, template_id)
        if not template.is_active:
            return ProjectionRunResult()

        months_ahead = normalize_months_ahead(months_ahead)
        today = self._today()
        deleted = await self._transactions.delete_future_for_template(
            workspace_id, template_id, today
        )
        outcomes = await self._project_template(
            workspace_id, template, month_start(today), months_ahead
        )
        result = ProjectionRunResult.fold(outcomes)

        self._logger.info(
            "template_projections_regenerated",
            workspace_id=workspace_id,
            template_id=template_id,
            deleted=deleted,
            generated=result.generated,
            skipped=result.skipped,
        )
        self._publish_generated(workspace_id, result, template_id=template_id)
        return result

    async def cleanup_projections_beyond_end_date(
        self, workspace_id: int, template_id: int, end_date: date
    ) -> int:
        """Delete unsettled projections dated after ``end_date``.

        Returns:
            Number of transactions removed.
        """
        deleted = await self._transactions.delete_generated_after(
            workspace_id, template_id, end_date
        )
        if deleted:
            self._logger.info(
                "projections_cleaned_up",
                workspace_id=workspace_id,
                template_id=template_id,
                end_date=end_date.isoformat(),
                deleted=deleted,
            )
            if self._publisher is not None:
                self._publisher.publish(
                    projections_cleaned_up(workspace_id, template_id, deleted)
                )
        return deleted

    # === Per-template / per-month ===

    async def _trim_beyond_end_date(
        self, workspace_id: int, template: RecurringTransaction
    ) -> ProjectionOutcome | None:
        """Apply a template's end date to rows already materialized.

        Returns a FAILED outcome when the delete fails, None otherwise.
        """
        end_date = template.end_date
        assert end_date is not None and template.id is not None
        try:
            await self.cleanup_projections_beyond_end_date(workspace_id, template.id, end_date)
        except Exception as e:
            self._logger.warning(
                "projection_cleanup_failed",
                workspace_id=workspace_id,
                template_id=template.id,
                error=str(e),
            )
            return self._outcome(
                OutcomeKind.FAILED, template, end_date.year, end_date.month, reason=str(e)
            )
        return None

    async def _project_template(
        self,
        workspace_id: int,
        template: RecurringTransaction,
        first_month: date,
        months: int,
    ) -> list[ProjectionOutcome]:
        if not template.is_active:
            return [
                self._outcome(
                    OutcomeKind.SKIPPED_INACTIVE, template, first_month.year, first_month.month
                )
            ]

        outcomes: list[ProjectionOutcome] = []
        for year, month in iter_months(first_month, months):
            outcome = await self._project_month(workspace_id, template, year, month)
            outcomes.append(outcome)
            if outcome.kind is OutcomeKind.SKIPPED_AFTER_END:
                break
        return outcomes

    async def _project_month(
        self,
        workspace_id: int,
        template: RecurringTransaction,
        year: int,
        month: int,
    ) -> ProjectionOutcome:
        if not template.is_active:
            return self._outcome(OutcomeKind.SKIPPED_INACTIVE, template, year, month)

        target = date(year, month, 1)
        if target < month_start(template.start_date):
            return self._outcome(OutcomeKind.SKIPPED_BEFORE_START, template, year, month)

        due_date = calculate_actual_due_date(template.due_day, year, month)
        end_date = template.end_date
        if end_date is not None and (target > month_start(end_date) or due_date > end_date):
            return self._outcome(OutcomeKind.SKIPPED_AFTER_END, template, year, month)

        template_id = template.id
        assert template_id is not None, "stored templates always carry an id"

        try:
            if await self._transactions.exists_for_template_and_month(
                workspace_id, template_id, year, month
            ):
                return self._outcome(OutcomeKind.SKIPPED_EXISTING, template, year, month)

            await self._transactions.create_generated(
                Transaction(
                    workspace_id=workspace_id,
                    account_id=template.account_id,
                    name=template.name,
                    amount=template.amount,
                    type=template.type,
                    transaction_date=due_date,
                    category_id=template.category_id,
                    source=TransactionSource.RECURRING,
                    template_id=template_id,
                    is_projected=due_date >= self._today(),
                    is_paid=False,
                )
            )
        except DuplicateProjectionError:
            return self._outcome(OutcomeKind.SKIPPED_EXISTING, template, year, month)
        except Exception as e:
            self._logger.warning(
                "projection_failed",
                workspace_id=workspace_id,
                template_id=template_id,
                year=year,
                month=month,
                error=str(e),
            )
            return self._outcome(OutcomeKind.FAILED, template, year, month, reason=str(e))

        return self._outcome(OutcomeKind.GENERATED, template, year, month)

    @staticmethod
    def _outcome(
        kind: OutcomeKind,
        template: RecurringTransaction,
        year: int,
        month: int,
        reason: str | None = None,
    ) -> ProjectionOutcome:
        return ProjectionOutcome(
            kind=kind,
            template_id=template.id or 0,
            template_name=template.name,
            year=year,
            month=month,
            reason=reason,
        )

    def _publish_generated(
        self, workspace_id: int, result: ProjectionRunResult, template_id: int | None = None
    ) -> None:
        if self._publisher is None or result.generated == 0:
            return
        self._publisher.publish(
            projections_generated(
                workspace_id, result.generated, result.skipped, template_id=template_id
            )
        )
