"""Tests for the holder snapshot and custody resolution."""

import json

import pytest

from gib.core.models import HolderSnapshot, TokenAccountBalance
from gib.core.types import SkipReason
from gib.pipeline.holders import HolderSnapshotter, select_largest_account
from gib.providers.metaplex import find_associated_token_address
from gib.resolution.custody_resolver import CustodyResolver

from .conftest import SYSTEM_PROGRAM, USDC_MINT, USDT_MINT, WRAPPED_SOL_MINT


class TestSelectLargestAccount:
    """Tests for largest account selection."""

    def test_highest_ui_amount_wins(self):
        accounts = [
            TokenAccountBalance(address="a", ui_amount=0.0),
            TokenAccountBalance(address="b", ui_amount=1.0),
            TokenAccountBalance(address="c", ui_amount=0.5),
        ]
        assert select_largest_account(accounts).address == "b"

    def test_first_account_wins_ties(self):
        accounts = [
            TokenAccountBalance(address="a", ui_amount=1.0),
            TokenAccountBalance(address="b", ui_amount=1.0),
        ]
        assert select_largest_account(accounts).address == "a"

    def test_missing_ui_amount_counts_as_zero(self):
        accounts = [
            TokenAccountBalance(address="a", ui_amount=None),
            TokenAccountBalance(address="b", ui_amount=0.0),
            TokenAccountBalance(address="c", ui_amount=None),
        ]
        assert select_largest_account(accounts).address == "a"


class TestHolderSnapshotModel:
    """Tests for the ownership accumulator."""

    def test_record_upserts_owner(self):
        snapshot = HolderSnapshot()
        snapshot.record("OwnerX", "TokenA")
        snapshot.record("OwnerX", "TokenB")

        assert snapshot.total_holders == 1
        assert snapshot.total_mints == 2
        assert snapshot.holders["OwnerX"].mints == ["TokenA", "TokenB"]

    def test_mint_never_attributed_twice(self):
        snapshot = HolderSnapshot()
        assert snapshot.record("OwnerX", "TokenA") is True
        assert snapshot.record("OwnerY", "TokenA") is False
        assert snapshot.record("OwnerX", "TokenA") is False

        assert snapshot.to_json_dict() == {"OwnerX": {"amount": 1, "mints": ["TokenA"]}}


class TestHolderSnapshotter:
    """Tests for the snapshot pipeline."""

    @pytest.mark.asyncio
    async def test_two_tokens_same_owner(self, ledger, tmp_path):
        """Both tokens held by OwnerX produce a single record."""
        ledger.hold("TokenA", "OwnerX")
        ledger.hold("TokenB", "OwnerX")
        output = tmp_path / "gib-holders.json"

        snapshot, summary = await HolderSnapshotter(ledger).run(["TokenA", "TokenB"], output)

        assert snapshot.to_json_dict() == {"OwnerX": {"amount": 2, "mints": ["TokenA", "TokenB"]}}
        assert snapshot.total_holders == 1
        assert snapshot.total_mints == 2
        assert summary.succeeded == 2
        assert summary.skipped == []
        assert json.loads(output.read_text()) == {
            "OwnerX": {"amount": 2, "mints": ["TokenA", "TokenB"]}
        }

    @pytest.mark.asyncio
    async def test_amounts_sum_to_resolved_tokens(self, ledger):
        """Sum of amounts equals resolved tokens, and no mint appears twice."""
        hashlist = [f"Token{i}" for i in range(12)]
        owners = ["OwnerX", "OwnerY", "OwnerZ"]
        for i, token in enumerate(hashlist):
            if i % 5 == 4:
                continue  # no holder account
            ledger.hold(token, owners[i % 3])
        hashlist.append("Token0")  # duplicate entry

        snapshot, summary = await HolderSnapshotter(ledger).snapshot(hashlist)

        all_mints = [m for record in snapshot.holders.values() for m in record.mints]
        assert len(all_mints) == len(set(all_mints))
        assert snapshot.total_mints == len(set(all_mints))
        assert sum(r.amount for r in snapshot.holders.values()) == 10
        assert summary.skip_counts() == {SkipReason.NO_HOLDER: 2}
        assert summary.duplicates == 1
        assert summary.succeeded == snapshot.total_mints

    @pytest.mark.asyncio
    async def test_failed_token_does_not_stop_run(self, ledger):
        ledger.hold("TokenA", "OwnerX")
        ledger.hold("TokenC", "OwnerY")
        ledger.failures.add("TokenB")

        snapshot, summary = await HolderSnapshotter(ledger).snapshot(["TokenA", "TokenB", "TokenC"])

        assert set(snapshot.holders) == {"OwnerX", "OwnerY"}
        assert [o.token for o in summary.skipped] == ["TokenB"]
        assert summary.skipped[0].skip_reason == SkipReason.RPC_ERROR

    @pytest.mark.asyncio
    async def test_missing_owner_is_skipped(self, ledger):
        account = ledger.hold("TokenA", "OwnerX")
        del ledger.owners[account]

        snapshot, summary = await HolderSnapshotter(ledger).snapshot(["TokenA"])

        assert snapshot.holders == {}
        assert summary.skipped[0].skip_reason == SkipReason.OWNER_LOOKUP_FAILED

    @pytest.mark.asyncio
    async def test_output_independent_of_concurrency(self, ledger):
        hashlist = [f"Token{i}" for i in range(7)]
        for i, token in enumerate(hashlist):
            ledger.hold(token, f"Owner{i % 2}")

        sequential, _ = await HolderSnapshotter(ledger, concurrency=1).snapshot(hashlist)
        concurrent, _ = await HolderSnapshotter(ledger, concurrency=3).snapshot(hashlist)

        assert json.dumps(sequential.to_json_dict()) == json.dumps(concurrent.to_json_dict())

    @pytest.mark.asyncio
    async def test_progress_reports_every_token(self, ledger):
        ledger.hold("TokenA", "OwnerX")
        updates = []

        await HolderSnapshotter(ledger).snapshot(
            ["TokenA", "TokenB"], progress=lambda done, total: updates.append((done, total))
        )

        assert updates == [(1, 2), (2, 2)]


class TestCustodyResolver:
    """Tests for vault custody resolution."""

    VAULT = USDT_MINT
    TOKEN_C = WRAPPED_SOL_MINT

    @pytest.mark.asyncio
    async def test_identity_without_vault(self, ledger):
        resolver = CustodyResolver(ledger)
        for holder in ["OwnerX", self.VAULT, SYSTEM_PROGRAM]:
            assert await resolver.resolve("TokenA", holder) == holder
        assert ledger.total_calls == 0

    @pytest.mark.asyncio
    async def test_other_holders_untouched(self, ledger):
        resolver = CustodyResolver(ledger, vault_address=self.VAULT)
        assert await resolver.resolve(self.TOKEN_C, "OwnerX") == "OwnerX"
        assert ledger.total_calls == 0

    @pytest.mark.asyncio
    async def test_vault_holding_resolves_to_depositor(self, ledger):
        """TokenC held by the vault is attributed to OwnerY."""
        ledger.hold(self.TOKEN_C, self.VAULT)
        custody_account = find_associated_token_address(self.VAULT, self.TOKEN_C)
        ledger.add_transaction(custody_account, "sig-old", ["OwnerZ", custody_account], block_time=100)
        ledger.add_transaction(custody_account, "sig-new", ["OwnerY", custody_account], block_time=200)
        ledger.add_transaction(
            custody_account, "sig-failed", ["OwnerW", custody_account], block_time=300, err={"x": 1}
        )

        resolver = CustodyResolver(ledger, vault_address=self.VAULT)
        snapshot, _ = await HolderSnapshotter(ledger, resolver=resolver).snapshot([self.TOKEN_C])

        assert list(snapshot.holders) == ["OwnerY"]
        assert self.VAULT not in snapshot.holders

    @pytest.mark.asyncio
    async def test_missing_block_time_counts_as_now(self, ledger):
        custody_account = find_associated_token_address(self.VAULT, self.TOKEN_C)
        ledger.add_transaction(custody_account, "sig-timed", ["OwnerZ", custody_account], block_time=100)
        ledger.add_transaction(custody_account, "sig-pending", ["OwnerY", custody_account], block_time=None)

        resolver = CustodyResolver(ledger, vault_address=self.VAULT, clock=lambda: 1_000.0)

        assert await resolver.resolve(self.TOKEN_C, self.VAULT) == "OwnerY"

    @pytest.mark.asyncio
    async def test_unresolved_custody_is_skipped(self, ledger):
        ledger.hold(self.TOKEN_C, self.VAULT)

        resolver = CustodyResolver(ledger, vault_address=self.VAULT)
        snapshot, summary = await HolderSnapshotter(ledger, resolver=resolver).snapshot([self.TOKEN_C])

        assert snapshot.holders == {}
        assert summary.skipped[0].skip_reason == SkipReason.CUSTODY_UNRESOLVED

    @pytest.mark.asyncio
    async def test_custody_rpc_failure_is_skipped(self, ledger):
        ledger.hold(self.TOKEN_C, self.VAULT)
        ledger.failures.add(find_associated_token_address(self.VAULT, self.TOKEN_C))

        resolver = CustodyResolver(ledger, vault_address=self.VAULT)
        _, summary = await HolderSnapshotter(ledger, resolver=resolver).snapshot(
            [self.TOKEN_C, USDC_MINT]
        )

        assert [(o.token, o.skip_reason) for o in summary.skipped] == [
            (self.TOKEN_C, SkipReason.CUSTODY_UNRESOLVED),
            (USDC_MINT, SkipReason.NO_HOLDER),
        ]
