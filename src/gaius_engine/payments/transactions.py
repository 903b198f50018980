"""Subscription payment transaction construction."""

import base64
from dataclasses import dataclass

from algosdk import encoding, transaction

from gaius_engine.ledger.client import TransactionParams
from gaius_engine.plans.catalog import Plan


@dataclass(frozen=True)
class UnsignedPayment:
    tx_id: str
    encoded: bytes  # msgpack, as handed to the wallet
    amount: int
    receiver: str


def payment_note(plan: Plan, prefix: str) -> bytes:
    return f"{prefix} - {plan.name} Plan Subscription".encode()


def build_subscription_payment(
    params: TransactionParams,
    sender: str,
    receiver: str,
    plan: Plan,
    note_prefix: str,
) -> UnsignedPayment:
    """Build the unsigned payment of ``plan.price`` from ``sender`` to ``receiver``."""
    txn = transaction.PaymentTxn(
        sender=sender,
        sp=params.to_suggested_params(),
        receiver=receiver,
        amt=plan.price_micro_algos,
        note=payment_note(plan, note_prefix),
    )
    return UnsignedPayment(
        tx_id=txn.get_txid(),
        encoded=base64.b64decode(encoding.msgpack_encode(txn)),
        amount=plan.price_micro_algos,
        receiver=receiver,
    )
