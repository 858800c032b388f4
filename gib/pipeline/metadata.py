"""Metadata cache - on-chain and off-chain metadata for every token.

Mints already present in the cache file are never fetched again. Each new
entry is flushed to disk as soon as it is fetched, so an interrupted run
keeps everything fetched before the interruption.

An RPC failure while reading a metadata account ends the run. A metadata
URI that cannot be fetched or parsed is stored as ``null`` unless
``strict_json`` is set.
"""

import logging
from typing import Any

from ..core.exceptions import DataSourceError, TokenSkipped
from ..core.models import MetadataEntry, RunSummary, TokenOutcome
from ..core.types import SkipReason
from ..providers.ledger import LedgerClient
from ..providers.metaplex import decode_metadata_account, find_metadata_address
from ..providers.offchain import OffChainJSONProvider
from ..storage.json_store import MetadataStore
from .runner import ProgressCallback, run_tokens, unique_tokens

logger = logging.getLogger(__name__)


class MetadataCache:
    """Fills a metadata store for the tokens of a hashlist."""

    def __init__(
        self,
        ledger: LedgerClient,
        json_provider: OffChainJSONProvider,
        store: MetadataStore,
        concurrency: int = 1,
        strict_json: bool = False,
    ):
        self.ledger = ledger
        self.json_provider = json_provider
        self.store = store
        self.concurrency = concurrency
        self.strict_json = strict_json

    async def fetch_entry(self, token: str) -> MetadataEntry:
        """
        Fetch the metadata of one mint.

        Raises:
            TokenSkipped: If the mint has no decodable metadata account
            DataSourceError: On RPC failure, or JSON failure in strict mode
        """
        try:
            metadata_address = find_metadata_address(token)
        except ValueError as e:
            raise TokenSkipped(token, SkipReason.METADATA_ACCOUNT_MISSING, f"invalid mint address: {e}")

        data = await self.ledger.get_account_data(metadata_address)
        if data is None:
            raise TokenSkipped(token, SkipReason.METADATA_ACCOUNT_MISSING)

        try:
            on_chain = decode_metadata_account(data)
        except ValueError as e:
            raise TokenSkipped(token, SkipReason.METADATA_ACCOUNT_MISSING, str(e))

        document = None
        if on_chain.data.uri:
            document = await self._load_json(token, on_chain.data.uri)

        return MetadataEntry(token_data=on_chain.data, metadata=document, mint=token)

    async def _load_json(self, token: str, uri: str) -> Any:
        try:
            return await self.json_provider.fetch_json(uri)
        except DataSourceError as e:
            if self.strict_json:
                raise
            logger.warning(f"{token}: could not load metadata JSON from {uri}: {e.message}")
            return None

    async def run(
        self,
        hashlist: list[str],
        progress: ProgressCallback | None = None,
    ) -> RunSummary:
        """Fetch every token not yet cached, flushing after each new entry."""
        tokens, duplicates = unique_tokens(hashlist)
        pending = [token for token in tokens if not self.store.contains(token)]
        summary = RunSummary(
            command="snapshot-metadata",
            total=len(hashlist),
            already_cached=len(tokens) - len(pending),
            duplicates=duplicates,
            output_path=str(self.store.path),
        )

        def on_outcome(outcome: TokenOutcome) -> None:
            summary.add(outcome)
            if outcome.ok:
                self.store.add(outcome.value)
                self.store.flush()

        logger.info(
            f"Starting to fetch metadata: {len(pending)} tokens "
            f"({summary.already_cached} already cached)"
        )
        await run_tokens(
            pending,
            self.fetch_entry,
            on_outcome,
            concurrency=self.concurrency,
            progress=progress,
        )

        logger.info(f"Metadata fetched: {summary.succeeded} new entries")
        return summary
