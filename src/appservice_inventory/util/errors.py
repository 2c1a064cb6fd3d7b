from __future__ import annotations

from enum import IntEnum

PERMISSION_STATUS_CODES = {401, 403}
PERMISSION_ERROR_CODES = (
    "authorizationfailed",
    "forbidden",
    "insufficientaccess",
    "insufficientaccesserror",
)


class ExitCode(IntEnum):
    OK = 0
    CONFIG_ERROR = 2
    AUTH_ERROR = 3
    AZURE_ERROR = 4
    RUNTIME_ERROR = 5


class InventoryError(Exception):
    """Base error for inventory pipeline."""


class ConfigError(InventoryError):
    """Raised for configuration or argument issues."""


class AuthResolutionError(InventoryError):
    """Raised when authentication cannot be resolved."""


class AzureClientError(InventoryError):
    """Raised when Azure SDK operations fail in a non-recoverable way."""


class ExportError(InventoryError):
    """Raised when exporting artifacts fails."""


class PageShapeError(InventoryError):
    """Raised when a backend page does not match the shape of the pages merged before it."""


class NoPageError(InventoryError):
    """
    Raised by the query executor when the backend produced no page for a request.
    `denied` is True when the backend refused the request for permission reasons.
    """

    def __init__(self, message: str, *, denied: bool = False) -> None:
        super().__init__(message)
        self.denied = denied


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigError, ValueError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, AuthResolutionError):
        return int(ExitCode.AUTH_ERROR)
    if isinstance(exc, AzureClientError):
        return int(ExitCode.AZURE_ERROR)
    if isinstance(exc, (ExportError, InventoryError)):
        return int(ExitCode.RUNTIME_ERROR)
    return 1


def _azure_error_types() -> tuple[type[BaseException], ...]:
    try:
        from azure.core.exceptions import AzureError  # type: ignore
    except Exception:
        return ()
    return (AzureError,)


def is_azure_error(exc: BaseException) -> bool:
    """
    Return True if the exception looks like an Azure SDK error.
    """
    azure_types = _azure_error_types()
    if azure_types and isinstance(exc, azure_types):
        return True
    return exc.__class__.__module__.startswith("azure.")


def is_permission_error(exc: BaseException) -> bool:
    """
    Return True when an Azure error means the caller lacks access (as opposed to a
    malformed query or a transport failure).
    """
    if exc.__class__.__name__ == "ClientAuthenticationError":
        return True
    status = getattr(exc, "status_code", None)
    if status in PERMISSION_STATUS_CODES:
        return True
    error = getattr(exc, "error", None)
    code = str(getattr(error, "code", "") or "").lower()
    return bool(code) and code in PERMISSION_ERROR_CODES


def map_azure_error(exc: BaseException, context: str) -> AzureClientError | None:
    """
    Wrap Azure SDK errors with AzureClientError for consistent exit codes.
    """
    if not is_azure_error(exc):
        return None
    return AzureClientError(f"{context}: {exc}")
