"""Gaius-Engine exception hierarchy.

Each error carries a ``code`` naming its failure kind. Payment failures are
converted into typed results at the engine boundary, so the codes double as
the ``reason`` values callers see.
"""


class GaiusError(Exception):
    """Base exception for all Gaius errors."""

    def __init__(self, message: str = "", code: str = "GaiusError"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidAddressError(GaiusError):
    """Raised when a wallet address is not a valid chain address."""

    def __init__(self, message: str = "Invalid wallet address"):
        super().__init__(message, code="InvalidAddress")


class UnknownPlanError(GaiusError):
    """Raised when a plan identifier is not in the catalog."""

    def __init__(self, message: str = "Invalid subscription plan"):
        super().__init__(message, code="UnknownPlan")


class ResolverUnavailableError(GaiusError):
    """Raised when subscription storage cannot be read."""

    def __init__(self, message: str = "Subscription storage unavailable"):
        super().__init__(message, code="ResolverUnavailable")


class LedgerUnavailableError(GaiusError):
    """Raised when the ledger node cannot be reached or answers with an error."""

    def __init__(self, message: str = "Ledger node unavailable"):
        super().__init__(message, code="LedgerUnavailable")


class NetworkParamsUnavailableError(GaiusError):
    """Raised when suggested transaction parameters cannot be fetched."""

    def __init__(self, message: str = "Could not fetch network transaction parameters"):
        super().__init__(message, code="NetworkParamsUnavailable")


class TransactionBuildError(GaiusError):
    """Raised when the payment transaction cannot be constructed."""

    def __init__(self, message: str = "Could not build payment transaction"):
        super().__init__(message, code="TransactionBuildFailed")


class UserRejectedError(GaiusError):
    """Raised when the wallet owner declines to sign."""

    def __init__(self, message: str = "Transaction was rejected by user."):
        super().__init__(message, code="UserRejected")


class SigningFailedError(GaiusError):
    """Raised when the signer errors, times out or returns no signature."""

    def __init__(self, message: str = "Failed to sign transaction"):
        super().__init__(message, code="SigningFailed")


class BroadcastFailedError(GaiusError):
    """Raised when the node rejects a signed transaction."""

    def __init__(self, message: str = "Transaction broadcast failed"):
        super().__init__(message, code="BroadcastFailed")


class ConfirmationTimeoutError(GaiusError):
    """Raised when a transaction is not confirmed within the polling bound."""

    def __init__(self, message: str = "Transaction not confirmed in time"):
        super().__init__(message, code="ConfirmationTimeout")


class RecordWriteFailedError(GaiusError):
    """Raised when a confirmed payment cannot be written to storage."""

    def __init__(self, message: str = "Subscription record could not be written"):
        super().__init__(message, code="RecordWriteFailed")


class PaymentMismatchError(GaiusError):
    """Raised when a transaction offered for reconciliation is not a valid plan payment."""

    def __init__(self, message: str = "Transaction does not match a subscription payment"):
        super().__init__(message, code="PaymentMismatch")
