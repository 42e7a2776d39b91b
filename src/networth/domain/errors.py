"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class ParseError(ValidationError):
    """A date or amount string could not be parsed."""


class NoValidRecordsError(ValidationError):
    """A batch import produced no usable rows; nothing was written."""


class NotFoundError(DomainError):
    """Requested domain entity or path does not exist."""


class AccountNotFoundError(NotFoundError):
    """The target account of a reconciliation does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class TransactionConflictError(ConflictError):
    """Optimistic-concurrency retries were exhausted."""


class SourceAuthError(DomainError):
    """The mail source rejected our credentials. Fatal for a whole pass."""


class MailSourceError(DomainError):
    """A message could not be listed, fetched or marked. Isolated per message."""


class UnauthenticatedError(DomainError):
    """A manual trigger was called without valid credentials."""


def account_not_found(account_id: int) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def account_name_taken(name: str) -> str:
    """Return message for duplicate account name."""
    return f"Account with name '{name}' already exists"


def no_valid_records(dropped: int) -> str:
    """Return message when a CSV batch has no usable rows."""
    return (
        f"No valid records found ({dropped} row{'s' if dropped != 1 else ''} dropped). "
        "Expected a header row with a 'date' or 'timestamp' column (DD/MM/YYYY) and a "
        "'value' or 'balance' column (e.g. 1.234,56)."
    )


def transaction_conflict(account_id: int, attempts: int) -> str:
    """Return message when concurrent writers kept invalidating our reads."""
    return (
        f"Could not update account {account_id}: concurrent modification persisted "
        f"after {attempts} attempt{'s' if attempts != 1 else ''}"
    )
