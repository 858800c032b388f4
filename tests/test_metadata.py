"""Tests for the metadata cache."""

import json

import httpx
import pytest
from solders.pubkey import Pubkey

from gib.core.exceptions import DataSourceError
from gib.core.types import SkipReason
from gib.pipeline.metadata import MetadataCache
from gib.providers.metaplex import find_metadata_address
from gib.providers.offchain import OffChainJSONProvider
from gib.storage.json_store import MetadataStore

from .conftest import SYSTEM_PROGRAM, USDC_MINT, USDT_MINT, build_metadata_account

TOKEN_A_ENTRY = {
    "tokenData": {
        "name": "Gib #1",
        "symbol": "GIB",
        "uri": "https://example.com/1.json",
        "royaltyBasisPoints": 500,
        "creators": None,
    },
    "metadata": {"name": "Gib #1", "attributes": [{"trait_type": "Hat", "value": "Red"}]},
    "mint": "TokenA",
}

DOCUMENT = {"name": "Gib #2", "image": "https://example.com/2.png"}


def json_transport(routes: dict[str, httpx.Response]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return routes.get(str(request.url), httpx.Response(404))

    return httpx.MockTransport(handler)


def put_metadata(ledger, mint: str, uri: str = "https://example.com/2.json") -> None:
    ledger.account_data[find_metadata_address(mint)] = build_metadata_account(
        update_authority=bytes(Pubkey.from_string(SYSTEM_PROGRAM)),
        mint=bytes(Pubkey.from_string(mint)),
        name="Gib #2",
        symbol="GIB",
        uri=uri,
        seller_fee_basis_points=750,
    )


@pytest.fixture
def json_provider() -> OffChainJSONProvider:
    return OffChainJSONProvider(
        transport=json_transport({"https://example.com/2.json": httpx.Response(200, json=DOCUMENT)})
    )


class TestMetadataCache:
    """Tests for resumable metadata fetching."""

    @pytest.mark.asyncio
    async def test_only_uncached_token_is_fetched(self, ledger, json_provider, tmp_path):
        """A pre-existing TokenA entry is kept byte for byte; only the new mint is fetched."""
        path = tmp_path / "gib-meta.json"
        path.write_text(json.dumps([TOKEN_A_ENTRY]))
        put_metadata(ledger, USDC_MINT)

        summary = await MetadataCache(ledger, json_provider, MetadataStore(path)).run(
            ["TokenA", USDC_MINT]
        )

        assert ledger.calls["get_account_data"] == 1
        assert summary.already_cached == 1
        assert summary.succeeded == 1

        entries = json.loads(path.read_text())
        assert [e["mint"] for e in entries] == ["TokenA", USDC_MINT]
        assert json.dumps(entries[0]) == json.dumps(TOKEN_A_ENTRY)
        assert entries[1] == {
            "tokenData": {
                "name": "Gib #2",
                "symbol": "GIB",
                "uri": "https://example.com/2.json",
                "royaltyBasisPoints": 750,
                "creators": None,
            },
            "metadata": DOCUMENT,
            "mint": USDC_MINT,
        }

    @pytest.mark.asyncio
    async def test_second_run_makes_no_chain_calls(self, ledger, json_provider, tmp_path):
        path = tmp_path / "gib-meta.json"
        put_metadata(ledger, USDC_MINT)
        hashlist = [USDC_MINT]

        await MetadataCache(ledger, json_provider, MetadataStore(path)).run(hashlist)
        first_run = path.read_text()
        ledger.calls.clear()

        summary = await MetadataCache(ledger, json_provider, MetadataStore(path)).run(hashlist)

        assert ledger.total_calls == 0
        assert summary.already_cached == 1
        assert path.read_text() == first_run

    @pytest.mark.asyncio
    async def test_unreachable_json_is_stored_as_null(self, ledger, json_provider, tmp_path):
        put_metadata(ledger, USDC_MINT, uri="https://example.com/missing.json")
        store = MetadataStore(tmp_path / "gib-meta.json")

        await MetadataCache(ledger, json_provider, store).run([USDC_MINT])

        assert store.entries[0]["metadata"] is None
        assert store.entries[0]["tokenData"]["uri"] == "https://example.com/missing.json"

    @pytest.mark.asyncio
    async def test_strict_json_propagates(self, ledger, json_provider, tmp_path):
        put_metadata(ledger, USDC_MINT, uri="https://example.com/missing.json")
        store = MetadataStore(tmp_path / "gib-meta.json")

        with pytest.raises(DataSourceError):
            await MetadataCache(ledger, json_provider, store, strict_json=True).run([USDC_MINT])
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_missing_metadata_account_is_skipped_and_not_cached(
        self, ledger, json_provider, tmp_path
    ):
        put_metadata(ledger, USDC_MINT)
        store = MetadataStore(tmp_path / "gib-meta.json")

        summary = await MetadataCache(ledger, json_provider, store).run([USDT_MINT, USDC_MINT])

        assert summary.skipped[0].token == USDT_MINT
        assert summary.skipped[0].skip_reason == SkipReason.METADATA_ACCOUNT_MISSING
        assert not store.contains(USDT_MINT)
        assert store.contains(USDC_MINT)

    @pytest.mark.asyncio
    async def test_rpc_failure_ends_run_keeping_flushed_entries(
        self, ledger, json_provider, tmp_path
    ):
        path = tmp_path / "gib-meta.json"
        put_metadata(ledger, USDC_MINT)
        ledger.failures.add(find_metadata_address(USDT_MINT))

        with pytest.raises(DataSourceError):
            await MetadataCache(ledger, json_provider, MetadataStore(path)).run(
                [USDC_MINT, USDT_MINT]
            )

        assert [e["mint"] for e in json.loads(path.read_text())] == [USDC_MINT]

    @pytest.mark.asyncio
    async def test_rpc_failure_in_batch_keeps_earlier_entries(
        self, ledger, json_provider, tmp_path
    ):
        path = tmp_path / "gib-meta.json"
        put_metadata(ledger, USDC_MINT)
        ledger.failures.add(find_metadata_address(USDT_MINT))
        cache = MetadataCache(ledger, json_provider, MetadataStore(path), concurrency=2)

        with pytest.raises(DataSourceError):
            await cache.run([USDC_MINT, USDT_MINT])

        assert [e["mint"] for e in json.loads(path.read_text())] == [USDC_MINT]

    @pytest.mark.asyncio
    async def test_repeated_mint_is_fetched_once(self, ledger, json_provider, tmp_path):
        put_metadata(ledger, USDC_MINT)
        store = MetadataStore(tmp_path / "gib-meta.json")

        summary = await MetadataCache(ledger, json_provider, store, concurrency=2).run(
            [USDC_MINT, USDC_MINT]
        )

        assert ledger.calls["get_account_data"] == 1
        assert summary.succeeded == 1
        assert summary.duplicates == 1
        assert len(store) == 1


class TestMetadataStore:
    """Tests for the JSON cache file."""

    def test_malformed_entries_are_ignored(self, tmp_path):
        path = tmp_path / "gib-meta.json"
        path.write_text(json.dumps([TOKEN_A_ENTRY, {"no": "mint"}, "junk"]))

        store = MetadataStore(path)

        assert len(store) == 1
        assert store.contains("TokenA")

    def test_invalid_file_raises_configuration_error(self, tmp_path):
        from gib.core.exceptions import ConfigurationError

        path = tmp_path / "gib-meta.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError):
            MetadataStore(path)
