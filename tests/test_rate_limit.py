"""Unit tests for the sliding-window rate limiter."""

import threading

import pytest

from alertswarm.enrichment.rate_limit import RateWindow


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestRateWindow:
    """Tests for RateWindow."""

    def test_capacity_then_reject_then_recover(self, clock: FakeClock):
        """Four admissions fit, the fifth is refused until the window passes."""
        window = RateWindow(capacity=4, window_seconds=60, clock=clock)

        for _ in range(4):
            assert window.try_admit() is True
            clock.advance(1)

        assert window.try_admit() is False

        clock.advance(60)
        assert window.try_admit() is True

    def test_rejected_attempt_is_not_recorded(self, clock: FakeClock):
        """A refused request does not consume a slot."""
        window = RateWindow(capacity=1, window_seconds=10, clock=clock)

        assert window.try_admit() is True
        assert window.try_admit() is False
        assert window.in_flight == 1

    def test_slots_expire_individually(self, clock: FakeClock):
        """Each timestamp leaves the window on its own schedule."""
        window = RateWindow(capacity=2, window_seconds=10, clock=clock)

        window.try_admit()
        clock.advance(5)
        window.try_admit()
        assert window.can_admit() is False

        clock.advance(5)
        assert window.can_admit() is True
        assert window.in_flight == 1

    def test_can_admit_and_admit_separately(self, clock: FakeClock):
        """can_admit does not record; admit always records."""
        window = RateWindow(capacity=2, window_seconds=60, clock=clock)

        assert window.can_admit() is True
        assert window.in_flight == 0

        window.admit()
        window.admit()
        assert window.can_admit() is False

    @pytest.mark.parametrize("capacity,window_seconds", [(0, 60), (4, 0), (4, -1)])
    def test_invalid_configuration(self, capacity: int, window_seconds: float):
        with pytest.raises(ValueError):
            RateWindow(capacity=capacity, window_seconds=window_seconds)

    def test_concurrent_admissions_never_exceed_capacity(self):
        """Threads racing for slots cannot overshoot the capacity."""
        window = RateWindow(capacity=50, window_seconds=3600)
        admitted = []
        lock = threading.Lock()

        def worker():
            for _ in range(20):
                if window.try_admit():
                    with lock:
                        admitted.append(1)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(admitted) == 50
        assert window.in_flight == 50
