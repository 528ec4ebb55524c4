from holdex.domain.epochs import SLOTS_PER_EPOCH, epoch_of, epoch_slot_range


class TestEpochOf:
    def test_scenario_slots_map_to_consecutive_epochs(self) -> None:
        assert SLOTS_PER_EPOCH == 432_000
        assert [epoch_of(s) for s in (100, 432_100, 864_050)] == [0, 1, 2]

    def test_boundaries(self) -> None:
        assert epoch_of(0) == 0
        assert epoch_of(SLOTS_PER_EPOCH - 1) == 0
        assert epoch_of(SLOTS_PER_EPOCH) == 1

    def test_deterministic_and_monotonic(self) -> None:
        slots = list(range(0, 5 * SLOTS_PER_EPOCH, 12_345))
        epochs = [epoch_of(s) for s in slots]
        assert epochs == [epoch_of(s) for s in slots]
        assert all(a <= b for a, b in zip(epochs, epochs[1:]))

    def test_slot_range_round_trips(self) -> None:
        first, last = epoch_slot_range(731)
        assert epoch_of(first) == 731 and epoch_of(last) == 731
        assert epoch_of(first - 1) == 730 and epoch_of(last + 1) == 732
