"""Custody resolution - finds the beneficial owner of tokens held by a vault.

Staking and escrow programs take custody of the NFTs deposited into them,
so a naive largest-holder lookup reports the vault as the owner. When a
vault address is configured and a token's holder is that vault, the
depositor is recovered from the vault's associated token account for the
mint: the fee payer of the most recent successful transaction touching
that account is taken as the owner.
"""

import logging
import time
from typing import Callable

from ..core.exceptions import DataSourceError, TokenSkipped
from ..core.types import SkipReason
from ..providers.ledger import LedgerClient
from ..providers.metaplex import find_associated_token_address

logger = logging.getLogger(__name__)


class CustodyResolver:
    """Resolves the effective owner behind a token's nominal holder."""

    def __init__(
        self,
        ledger: LedgerClient,
        vault_address: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the resolver.

        Args:
            ledger: Read-only ledger client
            vault_address: Custody vault whose holdings are re-resolved;
                           None disables resolution
            clock: Time source used for transactions without a block time
        """
        self.ledger = ledger
        self.vault_address = vault_address or None
        self.clock = clock

    def requires_resolution(self, holder: str) -> bool:
        """Check whether a nominal holder is the configured vault."""
        return self.vault_address is not None and holder == self.vault_address

    async def resolve(self, token: str, holder: str) -> str:
        """
        Return the effective owner of a token.

        Args:
            token: Mint address
            holder: Nominal holder reported for the mint

        Returns:
            The holder itself, or the depositor if the holder is the vault

        Raises:
            TokenSkipped: If the depositor cannot be determined
        """
        if not self.requires_resolution(holder):
            return holder

        try:
            custody_account = find_associated_token_address(holder, token)
        except ValueError as e:
            raise TokenSkipped(token, SkipReason.CUSTODY_UNRESOLVED, f"invalid address: {e}")

        try:
            owner = await self._latest_fee_payer(custody_account)
        except DataSourceError as e:
            raise TokenSkipped(token, SkipReason.CUSTODY_UNRESOLVED, e.message)

        if owner is None:
            raise TokenSkipped(
                token,
                SkipReason.CUSTODY_UNRESOLVED,
                f"no successful transaction on custody account {custody_account}",
            )

        logger.debug(f"{token}: vault custody resolved to {owner}")
        return owner

    async def _latest_fee_payer(self, custody_account: str) -> str | None:
        history = await self.ledger.get_signatures_for_address(custody_account)
        candidates = [s for s in history if s.succeeded]
        if not candidates:
            return None

        now = int(self.clock())
        latest = max(candidates, key=lambda s: s.sort_time(now))

        transaction = await self.ledger.get_transaction(latest.signature)
        if transaction is None:
            return None
        return transaction.fee_payer
