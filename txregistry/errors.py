"""
Error taxonomy for the validation registry.

Duplicate submissions are not errors: they come back as a
ValidationResult with success=False.
"""


class TxRegistryError(Exception):
    """Base class for all registry errors."""


class InvalidDescriptor(TxRegistryError):
    """Raised when a transaction descriptor field is malformed."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class AuthenticationFailed(TxRegistryError):
    """Raised when no identity can be established from the submitted proof."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
