"""Holder snapshot - who owns each token of a hashlist.

For every mint the largest token account is looked up, its owning wallet
resolved, and the wallet passed through the custody resolver. The
resulting ownership table is written once, at the end of the run.
"""

import logging
from pathlib import Path

from ..core.exceptions import DataSourceError, TokenSkipped
from ..core.models import HolderSnapshot, RunSummary, TokenAccountBalance, TokenOutcome
from ..core.types import SkipReason
from ..providers.ledger import LedgerClient
from ..resolution.custody_resolver import CustodyResolver
from ..storage.json_store import save_holders
from .runner import ProgressCallback, run_tokens, unique_tokens

logger = logging.getLogger(__name__)


def select_largest_account(accounts: list[TokenAccountBalance]) -> TokenAccountBalance:
    """Pick the account with the highest UI balance (first one on ties)."""
    return max(accounts, key=lambda account: account.ui_amount or 0)


class HolderSnapshotter:
    """Builds the owner -> tokens table for a hashlist."""

    def __init__(
        self,
        ledger: LedgerClient,
        resolver: CustodyResolver | None = None,
        concurrency: int = 1,
    ):
        self.ledger = ledger
        self.resolver = resolver or CustodyResolver(ledger)
        self.concurrency = concurrency

    async def find_owner(self, token: str) -> str:
        """
        Return the effective owner of a mint.

        Raises:
            TokenSkipped: If no holder, owner or custody depositor is found
            DataSourceError: On RPC failure
        """
        accounts = await self.ledger.get_token_largest_accounts(token)
        if not accounts:
            raise TokenSkipped(token, SkipReason.NO_HOLDER)

        largest = select_largest_account(accounts)
        holder = await self.ledger.get_token_account_owner(largest.address)
        if not holder:
            raise TokenSkipped(
                token,
                SkipReason.OWNER_LOOKUP_FAILED,
                f"no owner for token account {largest.address}",
            )

        return await self.resolver.resolve(token, holder)

    async def snapshot(
        self,
        hashlist: list[str],
        progress: ProgressCallback | None = None,
    ) -> tuple[HolderSnapshot, RunSummary]:
        """
        Resolve the owner of every token in the hashlist.

        A token whose owner cannot be resolved is skipped and reported in
        the summary; it never aborts the run.
        """
        tokens, duplicates = unique_tokens(hashlist)
        snapshot = HolderSnapshot()
        summary = RunSummary(
            command="snapshot-holders",
            total=len(hashlist),
            duplicates=duplicates,
        )

        def on_outcome(outcome: TokenOutcome) -> None:
            summary.add(outcome)
            if outcome.ok:
                snapshot.record(outcome.value, outcome.token)

        logger.info(f"Starting to fetch owners of {len(tokens)} tokens")
        await run_tokens(
            tokens,
            self.find_owner,
            on_outcome,
            concurrency=self.concurrency,
            recoverable=(DataSourceError,),
            progress=progress,
        )

        logger.info(
            f"Owners fetched: {snapshot.total_mints} mints, {snapshot.total_holders} holders"
        )
        return snapshot, summary

    async def run(
        self,
        hashlist: list[str],
        output_path: Path,
        progress: ProgressCallback | None = None,
    ) -> tuple[HolderSnapshot, RunSummary]:
        """Take the snapshot and write it to ``output_path``."""
        snapshot, summary = await self.snapshot(hashlist, progress=progress)
        save_holders(output_path, snapshot)
        summary.output_path = str(output_path)
        logger.info(f"Saved holder snapshot to {output_path}")
        return snapshot, summary
