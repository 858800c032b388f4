"""Minter attribution - who minted each token, when, and for how much.

The earliest finalized transaction in a mint's history is taken to be the
mint transaction. This is a heuristic: mints with setup transactions
before the actual mint (authority changes, pre-created accounts) can be
attributed to the wrong transaction.

Its fee payer is reported as the minter and the fee payer's balance change
as the mint price. Rows are appended to the report as soon as they are
known, so an interrupted scan resumes where it stopped.
"""

import logging
import time
from typing import Callable

from ..core.exceptions import DataSourceError, TokenSkipped
from ..core.models import MinterRecord, RunSummary, TokenOutcome
from ..core.types import SkipReason
from ..providers.ledger import LedgerClient
from ..storage.csv_store import MinterReport
from .runner import ProgressCallback, run_tokens, unique_tokens

logger = logging.getLogger(__name__)


class MinterScanner:
    """Attributes each token of a hashlist to its minter."""

    def __init__(
        self,
        ledger: LedgerClient,
        report: MinterReport,
        concurrency: int = 1,
        clock: Callable[[], float] = time.time,
    ):
        self.ledger = ledger
        self.report = report
        self.concurrency = concurrency
        self.clock = clock

    async def attribute(self, token: str) -> MinterRecord:
        """
        Build the attribution row of a single token.

        Raises:
            TokenSkipped: If no finalized mint transaction can be found
            DataSourceError: On RPC failure
        """
        history = await self.ledger.get_signatures_for_address(token)
        finalized = [s for s in history if s.is_finalized]
        if not finalized:
            raise TokenSkipped(token, SkipReason.NO_FINALIZED_TRANSACTION)

        # missing block times sort as "now", i.e. after every timed transaction
        now = int(self.clock())
        earliest = min(finalized, key=lambda s: s.sort_time(now))

        transaction = await self.ledger.get_transaction(earliest.signature)
        if transaction is None:
            raise TokenSkipped(
                token,
                SkipReason.TRANSACTION_NOT_FOUND,
                f"transaction {earliest.signature} not returned by the node",
            )

        if not transaction.references(token):
            raise TokenSkipped(
                token,
                SkipReason.NOT_MINT_TRANSACTION,
                f"earliest transaction {earliest.signature} does not reference the mint",
            )

        return MinterRecord(
            token=token,
            minter=transaction.fee_payer,
            mint_price_lamports=transaction.fee_payer_balance_change(),
            block_time=transaction.block_time,
            mint_signature=earliest.signature,
        )

    async def scan(
        self,
        hashlist: list[str],
        progress: ProgressCallback | None = None,
    ) -> RunSummary:
        """
        Attribute every token not yet in the report.

        A failing token produces no row and never stops the scan.
        """
        tokens, duplicates = unique_tokens(hashlist)
        pending = [token for token in tokens if not self.report.contains(token)]
        summary = RunSummary(
            command="get-minters-information",
            total=len(hashlist),
            already_cached=len(tokens) - len(pending),
            duplicates=duplicates,
            output_path=str(self.report.path),
        )

        def on_outcome(outcome: TokenOutcome) -> None:
            summary.add(outcome)
            if outcome.ok:
                self.report.append(outcome.value)

        logger.info(
            f"Starting to fetch minters information: {len(pending)} tokens "
            f"({summary.already_cached} already reported)"
        )
        await run_tokens(
            pending,
            self.attribute,
            on_outcome,
            concurrency=self.concurrency,
            recoverable=(DataSourceError,),
            progress=progress,
        )

        logger.info(f"Minters information fetched: {summary.succeeded} new rows")
        return summary
