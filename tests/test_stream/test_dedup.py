"""Tests for EdgeDetector — debounce and change-only forwarding."""

from __future__ import annotations

import pytest

from src.stream.dedup import EdgeDetector


def _forwarded(detector: EdgeDetector, states: list[str], key: str = "k") -> list[str]:
    return [s for s in states if detector.observe(key, s)]


class TestSingleSample:
    def test_first_state_forwarded(self) -> None:
        assert _forwarded(EdgeDetector(1), ["normal"]) == ["normal"]

    def test_repeats_suppressed(self) -> None:
        d = EdgeDetector(1)
        assert _forwarded(d, ["normal", "normal", "major", "major", "normal"]) == [
            "normal",
            "major",
            "normal",
        ]

    def test_rejects_zero_samples(self) -> None:
        with pytest.raises(ValueError):
            EdgeDetector(0)


class TestDebounce:
    def test_two_consecutive_confirm(self) -> None:
        d = EdgeDetector(2)
        assert _forwarded(d, ["ok", "warn", "warn"]) == ["warn"]

    def test_alternating_never_confirms(self) -> None:
        d = EdgeDetector(2)
        assert _forwarded(d, ["ok", "warn", "ok", "warn"]) == []

    def test_confirmed_state_forwarded_once(self) -> None:
        d = EdgeDetector(2)
        assert _forwarded(d, ["warn", "warn", "warn", "warn"]) == ["warn"]

    def test_return_to_previous_state(self) -> None:
        d = EdgeDetector(2)
        seq = ["ok", "ok", "warn", "warn", "ok", "ok"]
        assert _forwarded(d, seq) == ["ok", "warn", "ok"]

    def test_blip_back_to_emitted_state_is_silent(self) -> None:
        d = EdgeDetector(2)
        seq = ["ok", "ok", "warn", "ok", "ok"]
        assert _forwarded(d, seq) == ["ok"]

    def test_four_samples(self) -> None:
        d = EdgeDetector(4)
        assert _forwarded(d, ["minor"] * 3) == []
        assert d.state_of("k") == ("minor", 3)
        assert d.observe("k", "minor") is True

    def test_keys_are_independent(self) -> None:
        d = EdgeDetector(2)
        d.observe("a", "warn")
        assert d.observe("b", "warn") is False
        assert d.observe("a", "warn") is True


class TestReset:
    def test_reset_single_key(self) -> None:
        d = EdgeDetector(1)
        d.observe("a", "ok")
        d.observe("b", "ok")
        d.reset("a")
        assert d.state_of("a") is None
        assert d.state_of("b") == ("ok", 1)
        assert d.observe("a", "ok") is True

    def test_reset_all(self) -> None:
        d = EdgeDetector(1)
        d.observe("a", "ok")
        d.reset()
        assert d.state_of("a") is None


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestPrune:
    def test_idle_keys_dropped(self) -> None:
        clock = FakeClock(0.0)
        d = EdgeDetector(1, clock=clock)
        d.observe("a", "ok")
        clock.now = 50.0
        d.observe("b", "ok")

        clock.now = 100.0
        assert d.prune(60) == 1
        assert d.state_of("a") is None
        assert d.state_of("b") == ("ok", 1)
        assert len(d) == 1

    def test_pruned_key_starts_over(self) -> None:
        clock = FakeClock(0.0)
        d = EdgeDetector(2, clock=clock)
        d.observe("k", "warn")
        d.observe("k", "warn")
        d.prune(10, now=10.0)
        assert d.observe("k", "warn") is False
        assert d.observe("k", "warn") is True
