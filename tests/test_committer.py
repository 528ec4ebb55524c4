import pytest

from holdex.application.committer import canonical_mints, commit_cached_epochs, commit_epoch, summarize_epoch
from holdex.domain.errors import CommitError
from holdex.domain.models import EpochTransactions

from conftest import FIXED_NOW, mint


def _state(storage):
    return (
        [h for e in sorted(storage.indexed_epochs()) for h in storage.epoch_holders(e)],
        storage.epoch_summaries(),
    )


class TestSummaries:
    def test_min_max_ignores_missing_times(self) -> None:
        s = summarize_epoch(4, [mint("A", 1, 300), mint("B", 2, None), mint("C", 3, 100)], FIXED_NOW)
        assert (s.holder_count, s.first_block_time, s.last_block_time) == (3, 100, 300)

    def test_no_times_gives_nulls(self) -> None:
        s = summarize_epoch(4, [mint("A", 1)], FIXED_NOW)
        assert s.first_block_time is None and s.last_block_time is None

    def test_canonical_order_and_dedup(self) -> None:
        rows = canonical_mints(0, [
            mint("B", 20), mint("A", 10), mint("A", 10), mint("C", 30, token="mint-B"),
        ])
        assert [m.signature for m in rows] == ["A", "B"]


class TestCommitEpoch:
    def test_scenario_three_epochs(self, storage, clock) -> None:
        commit_epoch(storage, 0, [mint("S1", 100, 1_700_000_000)], clock=clock)
        commit_epoch(storage, 1, [mint("S2", 432_100, 1_700_100_000)], clock=clock)
        commit_epoch(storage, 2, [mint("S3", 864_050, 1_700_200_000)], clock=clock)

        summaries = storage.epoch_summaries()
        assert [s.epoch for s in summaries] == [0, 1, 2]
        assert [s.holder_count for s in summaries] == [1, 1, 1]
        assert [(s.first_block_time, s.last_block_time) for s in summaries] == [
            (1_700_000_000, 1_700_000_000), (1_700_100_000, 1_700_100_000), (1_700_200_000, 1_700_200_000),
        ]
        assert storage.epoch_holders(1)[0].signature == "S2"
        assert storage.count_holders() == 3

    def test_recommit_with_same_input_is_idempotent(self, storage, clock) -> None:
        mints = [mint("A", 10, 1), mint("B", 20, 2)]
        commit_epoch(storage, 0, mints, clock=clock)
        before = _state(storage)
        commit_epoch(storage, 0, mints, clock=clock)
        assert _state(storage) == before

    def test_superset_refreshes_without_duplicates(self, storage, clock) -> None:
        s1 = [mint("A", 10, 1), mint("B", 20, 2)]
        s2 = [mint("C", 30, 3)]
        commit_epoch(storage, 0, s1, clock=clock)
        commit_epoch(storage, 0, s1 + s2, clock=clock)

        assert [h.signature for h in storage.epoch_holders(0)] == ["A", "B", "C"]
        assert storage.epoch_summaries()[0].holder_count == 3
        assert storage.epoch_summaries()[0].last_block_time == 3

    def test_shrinking_input_removes_stale_rows(self, storage, clock) -> None:
        commit_epoch(storage, 0, [mint("A", 10), mint("B", 20)], clock=clock)
        commit_epoch(storage, 0, [mint("B", 20)], clock=clock)
        assert [h.signature for h in storage.epoch_holders(0)] == ["B"]

    def test_other_epochs_untouched(self, storage, clock) -> None:
        commit_epoch(storage, 0, [mint("A", 10)], clock=clock)
        commit_epoch(storage, 1, [mint("B", 432_001)], clock=clock)
        commit_epoch(storage, 0, [], clock=clock)
        assert storage.epoch_holders(0) == []
        assert [h.signature for h in storage.epoch_holders(1)] == ["B"]
        assert storage.epoch_summaries()[0].holder_count == 0

    def test_failed_commit_rolls_back(self, storage, clock) -> None:
        commit_epoch(storage, 0, [mint("A", 10, 1)], clock=clock)
        commit_epoch(storage, 1, [mint("B", 432_001, 5)], clock=clock)
        before = _state(storage)

        # the same token already belongs to epoch 1: unique(mint) fails mid-transaction
        with pytest.raises(CommitError) as exc:
            commit_epoch(storage, 0, [mint("A", 10, 1), mint("X", 11, 2, token="mint-B")], clock=lambda: "later")

        assert exc.value.epoch == 0
        assert _state(storage) == before


class TestCommitCachedEpochs:
    def test_commits_each_cached_epoch(self, storage, tx_store, clock) -> None:
        for epoch, name in ((1, "B"), (0, "A")):
            txs = EpochTransactions()
            txs.mark_processed(name, mint(name, epoch * 432_000 + 5, 1_000 + epoch))
            tx_store.put(epoch, txs)

        summaries = commit_cached_epochs(storage, tx_store, clock=clock)

        assert [s.epoch for s in summaries] == [0, 1]
        assert storage.indexed_epochs() == {0, 1}
        assert all(s.indexed_at == FIXED_NOW for s in storage.epoch_summaries())

    def test_selected_epochs_only(self, storage, tx_store, clock) -> None:
        for epoch in (0, 1):
            txs = EpochTransactions()
            txs.mark_processed(f"S{epoch}", mint(f"S{epoch}", epoch * 432_000))
            tx_store.put(epoch, txs)

        commit_cached_epochs(storage, tx_store, epochs=[1], clock=clock)

        assert storage.indexed_epochs() == {1}
