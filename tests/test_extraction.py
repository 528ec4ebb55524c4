import pytest

from holdex.domain.errors import TransactionParseError
from holdex.domain.extraction import extract_mint, parse_transaction
from holdex.domain.models import ResolvedTransaction, TokenBalance

from conftest import GROUP, nft_tx, sig


def _payload(**meta_overrides):
    meta = {
        "err": None,
        "postTokenBalances": [
            {"accountIndex": 1, "mint": "MintA", "owner": "OwnerA",
             "uiTokenAmount": {"amount": "1", "decimals": 0, "uiAmount": 1.0}},
        ],
    }
    meta.update(meta_overrides)
    return {
        "slot": 432_100,
        "blockTime": 1_700_000_123,
        "meta": meta,
        "transaction": {"message": {"accountKeys": [
            {"pubkey": "Fee", "signer": True}, {"pubkey": "AtaA"}, {"pubkey": GROUP},
        ]}},
    }


class TestParseTransaction:
    def test_parses_json_parsed_payload(self) -> None:
        tx = parse_transaction(_payload())
        assert tx.slot == 432_100
        assert tx.block_time == 1_700_000_123
        assert tx.account_keys == ("Fee", "AtaA", GROUP)
        assert tx.post_token_balances[0] == TokenBalance(1, "MintA", "OwnerA", "1", 0)

    def test_accepts_plain_string_account_keys(self) -> None:
        p = _payload()
        p["transaction"]["message"]["accountKeys"] = ["Fee", "AtaA", GROUP]
        assert parse_transaction(p).account_keys == ("Fee", "AtaA", GROUP)

    def test_missing_token_balances_is_empty(self) -> None:
        p = _payload()
        del p["meta"]["postTokenBalances"]
        assert parse_transaction(p).post_token_balances == ()

    @pytest.mark.parametrize("payload", [
        "not-a-dict",
        {"meta": None, "transaction": {}},
        {"meta": {}, "transaction": {"message": {}}},
        {"meta": {"postTokenBalances": [{"accountIndex": 0}]},
         "transaction": {"message": {"accountKeys": []}}},
        {"meta": {}, "transaction": {"message": {"accountKeys": [42]}}},
    ])
    def test_rejects_malformed_payloads(self, payload) -> None:
        with pytest.raises(TransactionParseError):
            parse_transaction(payload)


class TestExtractMint:
    def test_matching_transaction_yields_mint(self) -> None:
        rec = sig("S1", 100, block_time=1_600_000_000)
        m = extract_mint(nft_tx(), GROUP, rec)
        assert m is not None
        assert (m.ata, m.mint, m.recipient, m.signature, m.slot) == ("AtaA", "MintA", "OwnerA", "S1", 100)
        assert m.block_time == 1_600_000_000

    def test_falls_back_to_transaction_block_time(self) -> None:
        m = extract_mint(nft_tx(block_time=1_700_000_000), GROUP, sig("S1", 100))
        assert m is not None and m.block_time == 1_700_000_000

    def test_rejects_committed_error(self) -> None:
        assert extract_mint(nft_tx(err={"InstructionError": [0, "Custom"]}), GROUP, sig("S1", 1)) is None

    def test_rejects_missing_group_account(self) -> None:
        assert extract_mint(nft_tx(group=False), GROUP, sig("S1", 1)) is None

    @pytest.mark.parametrize("amount,decimals", [("2", 0), ("1", 6), ("0", 0)])
    def test_rejects_non_unit_balances(self, amount, decimals) -> None:
        assert extract_mint(nft_tx(amount=amount, decimals=decimals), GROUP, sig("S1", 1)) is None

    def test_rejects_account_index_outside_key_list(self) -> None:
        assert extract_mint(nft_tx(account_index=99), GROUP, sig("S1", 1)) is None

    def test_rejects_balance_without_owner(self) -> None:
        assert extract_mint(nft_tx(owner=None), GROUP, sig("S1", 1)) is None

    def test_ownerless_unit_balance_does_not_hide_a_later_one(self) -> None:
        tx = ResolvedTransaction(
            slot=0, block_time=None, err=None,
            account_keys=("Fee", "AtaA", "AtaB", GROUP),
            post_token_balances=(
                TokenBalance(1, "MintA", None, "1", 0),
                TokenBalance(2, "MintB", "OwnerB", "1", 0),
            ),
        )
        m = extract_mint(tx, GROUP, sig("S1", 1))
        assert m is not None and (m.mint, m.ata, m.recipient) == ("MintB", "AtaB", "OwnerB")

    def test_first_qualifying_balance_wins(self) -> None:
        tx = ResolvedTransaction(
            slot=0, block_time=None, err=None,
            account_keys=("Fee", "AtaA", "AtaB", GROUP),
            post_token_balances=(
                TokenBalance(0, "Fungible", "Someone", "5000", 6),
                TokenBalance(1, "MintA", "OwnerA", "1", 0),
                TokenBalance(2, "MintB", "OwnerB", "1", 0),
            ),
        )
        m = extract_mint(tx, GROUP, sig("S1", 1))
        assert m is not None and (m.mint, m.ata) == ("MintA", "AtaA")
