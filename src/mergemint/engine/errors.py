"""Error taxonomy shared by every public operation of the collection."""

from __future__ import annotations


class MergeMintError(RuntimeError):
    """Base class for all failures surfaced by the collection core."""


class ConfigurationError(MergeMintError):
    """Raised when an operation depends on configuration that is missing."""


class AuthorizationError(MergeMintError):
    """Raised when the caller is not permitted to perform an operation."""


class ValidationError(MergeMintError):
    """Raised when a request is malformed or out of range."""


class InsufficientResourceError(MergeMintError):
    """Raised when a payment, allowance or pool balance is too low."""


class NotFoundError(MergeMintError):
    """Raised when a referenced unit or colour does not exist."""


class PaymentNotConfigured(ConfigurationError):
    """The prize pool has no payment medium yet."""


class NotAuthorized(AuthorizationError):
    pass


class InvalidRecipient(ValidationError):
    pass


class InvalidMintCount(ValidationError):
    pass


class InvalidMergeOperation(ValidationError):
    pass


class InvalidPercentage(ValidationError):
    pass


class InvalidTraitIndex(ValidationError):
    pass


class CooldownActive(ValidationError):
    """Share percentages are frozen for a while after every claim."""


class ZeroAmount(ValidationError):
    pass


class NotWinning(ValidationError):
    pass


class InsufficientPayment(InsufficientResourceError):
    pass


class AllowanceTooLow(InsufficientResourceError):
    pass


class PoolEmpty(InsufficientResourceError):
    pass


class InsufficientFunds(InsufficientResourceError):
    pass


class UnitNotFound(NotFoundError):
    pass


class UnknownColor(NotFoundError):
    pass


class LedgerMismatch(MergeMintError):
    """Raised when tracked pool funds diverge from the held balance."""


class SnapshotFormatError(MergeMintError):
    """Raised when a persisted snapshot uses an unsupported format."""


__all__ = [
    "AllowanceTooLow",
    "AuthorizationError",
    "ConfigurationError",
    "CooldownActive",
    "InsufficientFunds",
    "InsufficientPayment",
    "InsufficientResourceError",
    "InvalidMergeOperation",
    "InvalidMintCount",
    "InvalidPercentage",
    "InvalidRecipient",
    "InvalidTraitIndex",
    "LedgerMismatch",
    "MergeMintError",
    "NotAuthorized",
    "NotFoundError",
    "NotWinning",
    "PaymentNotConfigured",
    "PoolEmpty",
    "SnapshotFormatError",
    "UnitNotFound",
    "UnknownColor",
    "ValidationError",
    "ZeroAmount",
]
