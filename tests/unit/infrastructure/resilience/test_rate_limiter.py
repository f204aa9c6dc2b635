import pytest

from clicktracker.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter


@pytest.fixture
def limiter(clock):
    return SlidingWindowRateLimiter(max_requests=3, time_window=10.0, clock=clock)


def test_admits_up_to_max_requests_then_denies(limiter):
    assert [limiter.can_make_request() for _ in range(4)] == [True, True, True, False]
    # A denied attempt records nothing
    assert len(limiter.timestamps) == 3


def test_never_admits_more_than_max_in_any_trailing_window(clock):
    limiter = SlidingWindowRateLimiter(max_requests=5, time_window=10.0, clock=clock)
    admitted = []
    for _ in range(200):
        if limiter.can_make_request():
            admitted.append(clock.now())
        clock.advance(0.7)

    for start in admitted:
        in_window = [t for t in admitted if start <= t < start + 10.0]
        assert len(in_window) <= 5
    assert len(admitted) > 5


def test_wait_time_is_zero_when_empty(limiter):
    assert limiter.get_wait_time() == 0.0


def test_wait_time_after_filling_window_decreases_to_zero(limiter, clock):
    for _ in range(3):
        assert limiter.can_make_request()
        clock.advance(1.0)

    # Oldest request was made 3s ago
    first = limiter.get_wait_time()
    assert 0 < first <= 10.0
    assert first == pytest.approx(7.0)

    clock.advance(4.0)
    second = limiter.get_wait_time()
    assert second < first
    assert second == pytest.approx(3.0)

    clock.advance(5.0)
    assert limiter.get_wait_time() == 0.0


def test_wait_time_does_not_mutate_state(limiter):
    limiter.can_make_request()
    limiter.get_wait_time()
    limiter.get_wait_time()
    assert len(limiter.timestamps) == 1


def test_capacity_frees_once_oldest_leaves_window(limiter, clock):
    for _ in range(3):
        limiter.can_make_request()
    assert not limiter.can_make_request()

    clock.advance(limiter.get_wait_time())
    # Exactly windowMs old is outside the window
    assert limiter.can_make_request()


def test_remaining_requests_purges_stale_entries(limiter, clock):
    assert limiter.get_remaining_requests() == 3
    limiter.can_make_request()
    limiter.can_make_request()
    assert limiter.get_remaining_requests() == 1

    clock.advance(10.5)
    assert limiter.get_remaining_requests() == 3
    assert len(limiter.timestamps) == 0


def test_reset_time(limiter, clock):
    assert limiter.get_reset_time().timestamp() == pytest.approx(clock.now())

    start = clock.now()
    limiter.can_make_request()
    clock.advance(2.0)
    limiter.can_make_request()
    assert limiter.get_reset_time().timestamp() == pytest.approx(start + 10.0)


@pytest.mark.parametrize("max_requests, window", [(0, 10.0), (5, 0), (-1, 10.0)])
def test_rejects_invalid_configuration(max_requests, window):
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(max_requests=max_requests, time_window=window)
