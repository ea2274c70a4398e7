"""Grid error taxonomy shared by the stores, the coordinator and the API."""


class GridError(Exception):
    """Base class for every failure a grid operation can report."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StoreValidationError(GridError):
    """A write was rejected because a field is missing or malformed."""

    status_code = 400

    def __init__(self, message: str, field_errors: dict[str, str] | None = None, status_code: int = 400):
        super().__init__(message)
        self.field_errors = field_errors or {}
        self.status_code = status_code


class NotFoundError(GridError):
    """The referenced row, column or layout no longer exists."""

    status_code = 404


class ProtectedMutationError(GridError):
    """The mutation touches protected state (core column, last visible column, edit mode)."""

    status_code = 403


class StoreUnavailableError(GridError):
    """Transient network or server failure."""

    status_code = 503
