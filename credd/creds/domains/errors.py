"""Error kinds raised by credd."""
from typing import Optional


class CreddError(Exception):
    """Base error carrying a stable ``code`` so callers can tell kinds apart."""

    code = "credd-error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code


class ConfigNotFoundError(CreddError):
    """No configuration module at the expected path."""

    code = "CONFIG_NOT_FOUND"


class InvalidConfigError(CreddError):
    """Configuration module loaded but its shape is wrong."""

    code = "invalid-config"


class MissingServiceNameError(CreddError):
    code = "missing-service-name"


class UnsupportedServiceNameError(CreddError):
    code = "unsupported-service-name"


class UnauthorizedError(CreddError):
    """Provider rejected the token."""

    code = "unauthorized"


class OperationNotImplementedError(CreddError):
    """Provider does not support the requested operation."""

    code = "operation-not-implemented"


class ProviderError(CreddError):
    """Provider answered with an unexpected error status."""

    code = "provider-error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DiscoveryError(CreddError):
    code = "ROOT_NOT_FOUND"


class SettingsError(CreddError):
    """Tool settings file is unreadable or invalid."""

    code = "invalid-settings"


def error_code(exc: BaseException) -> str:
    """Return the stable code of ``exc``, or its class name for foreign errors."""
    if isinstance(exc, CreddError):
        return exc.code
    return type(exc).__name__
