"""Wallet signer interface."""

from typing import Optional, Protocol


class WalletSigner(Protocol):
    """Anything that can sign encoded transactions on behalf of a wallet.

    Receives unsigned msgpack-encoded transactions and returns the signed
    encodings in the same order. An entry is ``None`` when the wallet did not
    sign that transaction. A user declining the prompt should raise
    ``UserRejectedError``.
    """

    async def sign_transactions(self, txns: list[bytes]) -> list[Optional[bytes]]: ...
