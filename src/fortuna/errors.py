"""Exception hierarchy for the projection engine."""

from typing import Any

# Validation constants
MAX_TEMPLATE_NAME_LENGTH = 255
MIN_DUE_DAY = 1
MAX_DUE_DAY = 31


class FortunaError(Exception):
    """Base exception for all projection engine errors."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


# === Validation ===


class ValidationError(FortunaError):
    """Input rejected before reaching a store."""

    pass


class NameRequiredError(ValidationError):
    def __init__(self) -> None:
        super().__init__("name is required")


class NameTooLongError(ValidationError):
    def __init__(self, length: int) -> None:
        super().__init__(
            f"name exceeds maximum length of {MAX_TEMPLATE_NAME_LENGTH}",
            details={"length": length},
        )


class InvalidAmountError(ValidationError):
    def __init__(self, amount: Any) -> None:
        super().__init__("amount must be positive", details={"amount": str(amount)})


class InvalidTransactionTypeError(ValidationError):
    def __init__(self, value: Any) -> None:
        super().__init__("invalid transaction type", details={"type": value})


class InvalidFrequencyError(ValidationError):
    def __init__(self, value: Any) -> None:
        super().__init__(
            "invalid frequency: only monthly is supported", details={"frequency": value}
        )


class InvalidDueDayError(ValidationError):
    def __init__(self, value: Any) -> None:
        super().__init__(
            f"due day must be between {MIN_DUE_DAY} and {MAX_DUE_DAY}",
            details={"due_day": value},
        )


class InvalidDateRangeError(ValidationError):
    def __init__(self, start_date: Any, end_date: Any) -> None:
        super().__init__(
            "end date must not be before start date",
            details={"start_date": str(start_date), "end_date": str(end_date)},
        )


# === Not found ===


class NotFoundError(FortunaError):
    """A referenced record does not exist in the workspace."""

    def __init__(self, message: str, workspace_id: int, resource_id: int | None = None):
        super().__init__(message, details={"workspace_id": workspace_id, "id": resource_id})
        self.workspace_id = workspace_id
        self.resource_id = resource_id


class TemplateNotFoundError(NotFoundError):
    def __init__(self, workspace_id: int, template_id: int) -> None:
        super().__init__("recurring template not found", workspace_id, template_id)


class AccountNotFoundError(NotFoundError):
    def __init__(self, workspace_id: int, account_id: int) -> None:
        super().__init__("account not found", workspace_id, account_id)


class CategoryNotFoundError(NotFoundError):
    def __init__(self, workspace_id: int, category_id: int) -> None:
        super().__init__("budget category not found", workspace_id, category_id)


# === Persistence ===


class DuplicateProjectionError(FortunaError):
    """A generated transaction already exists for the template and month."""

    def __init__(self, template_id: int, year: int, month: int) -> None:
        super().__init__(
            "projection already exists",
            details={"template_id": template_id, "year": year, "month": month},
        )
        self.template_id = template_id
        self.year = year
        self.month = month
