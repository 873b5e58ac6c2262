"""Custom exceptions for the invoice bot."""


class InvoiceBotException(Exception):
    """Base exception for the invoice bot."""

    pass


class ValidationError(InvoiceBotException):
    """Raised when user input fails a field constraint."""

    pass


class NotFoundError(InvoiceBotException):
    """Raised when a referenced client, product or invoice does not exist."""

    pass


class ComputationError(InvoiceBotException):
    """Raised when totals cannot be computed (e.g. no invoice lines)."""

    pass


class CollaboratorError(InvoiceBotException):
    """Raised when persistence, rendering, storage or payment fails."""

    pass


class ConfigurationError(InvoiceBotException):
    """Raised when configuration is invalid."""

    pass
