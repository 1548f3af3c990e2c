"""Tests for the cancellation registry."""

from __future__ import annotations

import threading

from channelsync.scheduler import CancellationRegistry


class TestCancellationRegistry:
    """Tests for request and consume semantics."""

    def test_consume_without_request(self) -> None:
        registry = CancellationRegistry()

        assert registry.consume("chan-a") is False

    def test_consume_clears_flag(self) -> None:
        """A request is honored once."""
        registry = CancellationRegistry()
        registry.request("chan-a")

        assert registry.consume("chan-a") is True
        assert registry.consume("chan-a") is False

    def test_flags_are_per_channel(self) -> None:
        registry = CancellationRegistry()
        registry.request("chan-a")

        assert registry.consume("chan-b") is False
        assert registry.is_requested("chan-a") is True

    def test_request_all(self) -> None:
        registry = CancellationRegistry()

        count = registry.request_all(["chan-a", "chan-b"])

        assert count == 2
        assert set(registry.pending()) == {"chan-a", "chan-b"}

    def test_repeated_request_keeps_first_timestamp(self) -> None:
        registry = CancellationRegistry()
        registry.request("chan-a")
        first = registry.pending()["chan-a"]

        registry.request("chan-a")

        assert registry.pending()["chan-a"] == first

    def test_concurrent_consume_single_winner(self) -> None:
        """Only one of many concurrent observers honors a request."""
        registry = CancellationRegistry()
        registry.request("chan-a")
        barrier = threading.Barrier(16)
        results: list[bool] = []
        lock = threading.Lock()

        def observe() -> None:
            barrier.wait()
            consumed = registry.consume("chan-a")
            with lock:
                results.append(consumed)

        threads = [threading.Thread(target=observe) for _ in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1
        assert results.count(False) == 15
