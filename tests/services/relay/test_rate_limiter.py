# tests/services/relay/test_rate_limiter.py
"""
Тесты token bucket.
"""

from __future__ import annotations

from src.services.relay.rate_limiter import TokenBucket


def test_initial_burst_of_five(clock) -> None:
    bucket = TokenBucket(capacity=5, rate_per_sec=5, clock=clock)

    results = [bucket.try_consume() for _ in range(7)]

    assert results == [True] * 5 + [False] * 2


def test_sustained_five_per_second_never_dropped(clock) -> None:
    bucket = TokenBucket(capacity=5, rate_per_sec=5, clock=clock)

    accepted = 0
    for _ in range(100):
        if bucket.try_consume():
            accepted += 1
        clock.advance(0.2)

    assert accepted == 100


def test_flood_limited_to_rate(clock) -> None:
    bucket = TokenBucket(capacity=5, rate_per_sec=5, clock=clock)

    # 100 сообщений в секунду в течение 10 секунд
    accepted = 0
    for _ in range(1000):
        if bucket.try_consume():
            accepted += 1
        clock.advance(0.01)

    # Начальный всплеск 5 + ~5 в секунду
    assert 5 + 45 <= accepted <= 5 + 51


def test_refill_capped_at_capacity(clock) -> None:
    bucket = TokenBucket(capacity=5, rate_per_sec=5, clock=clock)
    bucket.try_consume()

    clock.advance(60)

    results = [bucket.try_consume() for _ in range(6)]
    assert results == [True] * 5 + [False]


def test_continuous_refill(clock) -> None:
    bucket = TokenBucket(capacity=5, rate_per_sec=5, clock=clock)
    for _ in range(5):
        bucket.try_consume()
    assert not bucket.try_consume()

    clock.advance(0.1)  # половина токена
    assert not bucket.try_consume()

    clock.advance(0.15)  # добираем до целого токена
    assert bucket.try_consume()


def test_clock_going_backwards_does_not_drain(clock) -> None:
    bucket = TokenBucket(capacity=5, rate_per_sec=5, clock=clock)
    bucket.try_consume()

    clock.advance(-10)

    assert bucket.try_consume()
    assert bucket.tokens >= 0
