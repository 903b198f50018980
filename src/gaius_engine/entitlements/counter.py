"""Count the loyalty programs a wallet currently holds on the ledger."""

import logging

from gaius_engine.ledger.client import AssetInfo, LedgerClient

logger = logging.getLogger(__name__)


def is_loyalty_program(asset: AssetInfo, marker: str = "") -> bool:
    """A program is a unique (total 1), indivisible asset, optionally carrying ``marker``."""
    if asset.total != 1 or asset.decimals != 0:
        return False
    if not marker:
        return True
    marker = marker.lower()
    return any(marker in field.lower() for field in (asset.name, asset.unit_name, asset.url))


async def count_programs(ledger: LedgerClient, wallet_address: str, marker: str = "") -> int:
    """Enumerate the wallet's holdings and count loyalty programs.

    Always hits the ledger; results are never cached. Ledger errors
    propagate so gating decisions can fail closed.
    """
    count = 0
    for holding in await ledger.get_account_assets(wallet_address):
        if holding.amount == 0:
            continue
        info = await ledger.get_asset_info(holding.asset_id)
        if info is None:
            logger.warning("Asset %s held by %s not found on ledger", holding.asset_id, wallet_address)
            continue
        if is_loyalty_program(info, marker):
            count += 1
    return count
