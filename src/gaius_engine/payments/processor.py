"""Payment processor: pay for a plan on-chain, then record the subscription.

``subscribe`` runs a strictly linear sequence of stages::

    Selecting -> BuildingTransaction -> AwaitingSignature -> Submitting
              -> Confirming -> Recording -> Done

Each stage awaits the previous one. The only retrying is the bounded
confirmation poll. Broadcasting and recording are two separate writes: if the
record write fails after confirmation the payment has settled but the
entitlement has not, and the result says so (``RecordWriteFailed`` with the
tx id) so the caller can run :meth:`PaymentProcessor.reconcile`.

There is no locking. Two concurrent ``subscribe`` calls for one wallet can
both pay; callers must block re-entry while a call is in flight (see
``gaius_engine.payments.checkout``).
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from algosdk import error as algosdk_error

from gaius_engine.common.config import GaiusSettings
from gaius_engine.common.exceptions import (
    ConfirmationTimeoutError,
    GaiusError,
    LedgerUnavailableError,
    NetworkParamsUnavailableError,
    PaymentMismatchError,
    RecordWriteFailedError,
    SigningFailedError,
    TransactionBuildError,
    UserRejectedError,
)
from gaius_engine.ledger.address import validate_address
from gaius_engine.ledger.client import ConfirmedTransaction, LedgerClient
from gaius_engine.ledger.signer import WalletSigner
from gaius_engine.payments.transactions import UnsignedPayment, build_subscription_payment
from gaius_engine.plans.catalog import DEFAULT_CATALOG, Plan, PlanCatalog, PlanId
from gaius_engine.subscriptions.resolver import Clock, Subscription, utcnow
from gaius_engine.subscriptions.store import EntitlementStore, PaymentRow, SubscriptionRow

logger = logging.getLogger(__name__)

# Raised by algosdk for a malformed receiver, amount or note
_BUILD_ERRORS = (
    algosdk_error.WrongKeyLengthError,
    algosdk_error.WrongChecksumError,
    algosdk_error.WrongAmountType,
    algosdk_error.WrongNoteType,
    algosdk_error.WrongNoteLength,
    algosdk_error.ZeroAddressError,
    ValueError,
)


class PaymentStage(str, enum.Enum):
    SELECTING = "Selecting"
    BUILDING_TRANSACTION = "BuildingTransaction"
    AWAITING_SIGNATURE = "AwaitingSignature"
    SUBMITTING = "Submitting"
    CONFIRMING = "Confirming"
    RECORDING = "Recording"
    DONE = "Done"


class FailureReason(str, enum.Enum):
    INVALID_ADDRESS = "InvalidAddress"
    UNKNOWN_PLAN = "UnknownPlan"
    RESOLVER_UNAVAILABLE = "ResolverUnavailable"
    LEDGER_UNAVAILABLE = "LedgerUnavailable"
    NETWORK_PARAMS_UNAVAILABLE = "NetworkParamsUnavailable"
    TRANSACTION_BUILD_FAILED = "TransactionBuildFailed"
    USER_REJECTED = "UserRejected"
    SIGNING_FAILED = "SigningFailed"
    BROADCAST_FAILED = "BroadcastFailed"
    CONFIRMATION_TIMEOUT = "ConfirmationTimeout"
    RECORD_WRITE_FAILED = "RecordWriteFailed"
    PAYMENT_MISMATCH = "PaymentMismatch"


@dataclass(frozen=True)
class SubscribeResult:
    success: bool
    message: str
    stage: PaymentStage
    tx_id: Optional[str] = None
    reason: Optional[FailureReason] = None
    subscription: Optional[Subscription] = None

    @property
    def payment_settled(self) -> bool:
        """True when money moved on-chain for this call."""
        return self.success or self.reason is FailureReason.RECORD_WRITE_FAILED

    @property
    def requires_reconciliation(self) -> bool:
        return self.reason is FailureReason.RECORD_WRITE_FAILED


class PaymentProcessor:
    """Drives one-time plan payments and records the resulting subscription."""

    def __init__(
        self,
        settings: GaiusSettings,
        ledger: LedgerClient,
        store: EntitlementStore,
        catalog: PlanCatalog = DEFAULT_CATALOG,
        clock: Clock = utcnow,
    ):
        self.settings = settings
        self.ledger = ledger
        self.store = store
        self.catalog = catalog
        self.clock = clock

    async def subscribe(
        self, wallet_address: str, plan_id: "PlanId | str", signer: WalletSigner,
    ) -> SubscribeResult:
        """Pay for ``plan_id`` from ``wallet_address`` and activate it.

        Never raises for engine failures; the returned result carries the
        failure reason and the stage it happened in.
        """
        stage = PaymentStage.SELECTING
        tx_id: Optional[str] = None
        try:
            validate_address(wallet_address)
            plan = self.catalog.get_plan(plan_id)

            stage = PaymentStage.BUILDING_TRANSACTION
            unsigned = await self._build(wallet_address, plan)

            stage = PaymentStage.AWAITING_SIGNATURE
            signed = await self._sign(signer, unsigned)

            stage = PaymentStage.SUBMITTING
            tx_id = await self.ledger.submit_signed_transaction(signed)
            logger.info(
                "Subscription payment broadcast",
                extra={"wallet": wallet_address, "plan": plan.id.value, "tx_id": tx_id},
            )

            stage = PaymentStage.CONFIRMING
            confirmed = await self._confirm(tx_id)

            stage = PaymentStage.RECORDING
            subscription = await self._record(
                wallet_address, plan, tx_id, unsigned.amount, confirmed.confirmed_round,
            )
        except GaiusError as exc:
            return self._failure(exc, stage, wallet_address, tx_id)
        except Exception as exc:
            if tx_id is None:
                raise
            # Broadcast already happened, so the result must carry the tx id.
            logger.exception(
                "Unexpected error after broadcast",
                extra={"wallet": wallet_address, "stage": stage.value, "tx_id": tx_id},
            )
            if stage is PaymentStage.RECORDING:
                error: GaiusError = RecordWriteFailedError(f"Subscription record could not be written: {exc}")
            else:
                error = ConfirmationTimeoutError(f"Confirmation status of {tx_id} unknown: {exc}")
            return self._failure(error, stage, wallet_address, tx_id)

        logger.info(
            "Subscription activated",
            extra={
                "wallet": wallet_address,
                "plan": plan.id.value,
                "tx_id": tx_id,
                "expiry_date": subscription.expiry_date.isoformat(),
            },
        )
        return SubscribeResult(
            success=True,
            message=f"Successfully subscribed to the {plan.name} plan!",
            stage=PaymentStage.DONE,
            tx_id=tx_id,
            subscription=subscription,
        )

    async def reconcile(
        self, wallet_address: str, tx_id: str, plan_id: "PlanId | str",
    ) -> SubscribeResult:
        """Record a confirmed payment whose record write previously failed.

        Idempotent per ``tx_id``: a payment that is already recorded is
        reported as success without writing again.
        """
        stage = PaymentStage.SELECTING
        try:
            validate_address(wallet_address)
            plan = self.catalog.get_plan(plan_id)

            existing = await self.store.find_payment(tx_id)
            if existing is not None:
                if existing.wallet_address != wallet_address:
                    raise PaymentMismatchError(
                        f"Transaction {tx_id} is already recorded for another wallet"
                    )
                return SubscribeResult(
                    success=True,
                    message=f"Payment {tx_id} is already recorded",
                    stage=PaymentStage.DONE,
                    tx_id=tx_id,
                )

            stage = PaymentStage.CONFIRMING
            confirmed = await self.ledger.get_transaction(tx_id)
            if confirmed is None or confirmed.confirmed_round <= 0:
                raise ConfirmationTimeoutError(f"Transaction {tx_id} is not confirmed on the ledger")
            self._verify_payment(confirmed, wallet_address, plan)

            stage = PaymentStage.RECORDING
            subscription = await self._record(
                wallet_address, plan, tx_id, confirmed.amount, confirmed.confirmed_round,
            )
        except GaiusError as exc:
            return self._failure(exc, stage, wallet_address, tx_id)

        logger.info(
            "Subscription reconciled",
            extra={"wallet": wallet_address, "plan": plan.id.value, "tx_id": tx_id},
        )
        return SubscribeResult(
            success=True,
            message=f"Reconciled payment {tx_id}: {plan.name} plan active",
            stage=PaymentStage.DONE,
            tx_id=tx_id,
            subscription=subscription,
        )

    # ── Stages ──

    async def _build(self, wallet_address: str, plan: Plan) -> UnsignedPayment:
        try:
            params = await self.ledger.get_transaction_params()
        except LedgerUnavailableError as exc:
            raise NetworkParamsUnavailableError(
                f"Could not fetch network transaction parameters: {exc.message}"
            ) from exc
        try:
            return build_subscription_payment(
                params,
                sender=wallet_address,
                receiver=self.settings.subscription_wallet,
                plan=plan,
                note_prefix=self.settings.payment_note_prefix,
            )
        except _BUILD_ERRORS as exc:
            raise TransactionBuildError(f"Could not build payment transaction: {exc}") from exc

    async def _sign(self, signer: WalletSigner, unsigned: UnsignedPayment) -> list[bytes]:
        try:
            signed = await asyncio.wait_for(
                signer.sign_transactions([unsigned.encoded]),
                timeout=self.settings.signing_timeout,
            )
        except GaiusError:
            raise
        except asyncio.TimeoutError as exc:
            raise SigningFailedError("Wallet did not respond to the signing request") from exc
        except Exception as exc:
            # Wallet adapters report a declined prompt as a plain error
            if "rejected" in str(exc).lower():
                raise UserRejectedError() from exc
            raise SigningFailedError(f"Failed to sign transaction: {exc}") from exc

        blobs = [bytes(s) for s in (signed or []) if s]
        if not blobs:
            raise SigningFailedError()
        return blobs

    async def _confirm(self, tx_id: str) -> ConfirmedTransaction:
        try:
            return await self.ledger.wait_for_confirmation(tx_id, self.settings.confirmation_rounds)
        except LedgerUnavailableError as exc:
            raise ConfirmationTimeoutError(
                f"Confirmation status of {tx_id} unknown: {exc.message}"
            ) from exc

    async def _record(
        self, wallet_address: str, plan: Plan, tx_id: str, amount: int, confirmed_round: int,
    ) -> Subscription:
        # Every payment restarts the period from now; remaining time is not carried over.
        now = self.clock()
        expiry = now + timedelta(days=self.settings.subscription_days)
        row = SubscriptionRow(
            wallet_address=wallet_address,
            plan=plan.id.value,
            activated_at=now,
            expiry_date=expiry,
            tx_id=tx_id,
        )
        payment = PaymentRow(
            tx_id=tx_id,
            wallet_address=wallet_address,
            plan=plan.id.value,
            amount=amount,
            paid_at=now,
            expiry_date=expiry,
            confirmed_round=confirmed_round,
        )
        try:
            written = await self.store.upsert_subscription(row, payment)
        except GaiusError:
            raise
        except Exception as exc:
            raise RecordWriteFailedError(f"Subscription record could not be written: {exc}") from exc

        if not written:
            return await self._stored_subscription(wallet_address, tx_id)

        return Subscription(
            wallet_address=wallet_address,
            plan=plan.id.value,
            activated_at=now,
            expiry_date=expiry,
            tx_id=tx_id,
            is_active=True,
        )

    async def _stored_subscription(self, wallet_address: str, tx_id: str) -> Subscription:
        """The stored subscription, when another call recorded this payment first."""
        logger.info("Payment already recorded", extra={"wallet": wallet_address, "tx_id": tx_id})
        row = await self.store.find_subscription(wallet_address)
        if row is None:
            raise RecordWriteFailedError(
                f"Payment {tx_id} is recorded but {wallet_address} has no subscription"
            )
        return Subscription(
            wallet_address=row.wallet_address,
            plan=row.plan,
            activated_at=row.activated_at,
            expiry_date=row.expiry_date,
            tx_id=row.tx_id,
            is_active=row.expiry_date > self.clock(),
        )

    def _verify_payment(self, confirmed: ConfirmedTransaction, wallet_address: str, plan: Plan) -> None:
        if confirmed.sender != wallet_address:
            raise PaymentMismatchError(f"Transaction {confirmed.tx_id} was not sent by {wallet_address}")
        if confirmed.receiver != self.settings.subscription_wallet:
            raise PaymentMismatchError(f"Transaction {confirmed.tx_id} was not paid to the subscription wallet")
        if confirmed.amount < plan.price_micro_algos:
            raise PaymentMismatchError(
                f"Transaction {confirmed.tx_id} paid {confirmed.amount} microAlgos, "
                f"{plan.name} costs {plan.price_micro_algos}"
            )

    def _failure(
        self, exc: GaiusError, stage: PaymentStage, wallet_address: str, tx_id: Optional[str],
    ) -> SubscribeResult:
        reason = _reason_for(exc)
        log_extra = {"wallet": wallet_address, "stage": stage.value, "reason": reason.value, "tx_id": tx_id}

        if reason is FailureReason.RECORD_WRITE_FAILED:
            logger.error("Payment settled on-chain but subscription not recorded", extra=log_extra)
            message = (
                f"Payment {tx_id} was confirmed but the subscription could not be recorded. "
                "Keep this transaction ID to reconcile your subscription."
            )
        else:
            if reason is FailureReason.USER_REJECTED:
                logger.info("Subscription payment declined", extra=log_extra)
            else:
                logger.warning("Subscription payment failed: %s", exc.message, extra=log_extra)
            message = f"Error processing payment: {exc.message}"

        return SubscribeResult(
            success=False, message=message, stage=stage, tx_id=tx_id, reason=reason,
        )


def _reason_for(exc: GaiusError) -> FailureReason:
    try:
        return FailureReason(exc.code)
    except ValueError:
        return FailureReason.LEDGER_UNAVAILABLE
