import threading
import time
from datetime import timedelta

import pytest

from windowlimit.limiter import Metrics, ShardedLimiter


@pytest.fixture
def make_limiter():
    created = []

    def factory(max_requests, window):
        limiter = ShardedLimiter(max_requests, window)
        created.append(limiter)
        return limiter

    yield factory
    for limiter in created:
        limiter.stop()


def test_first_request_is_always_allowed(make_limiter):
    limiter = make_limiter(1, 1.0)
    assert limiter.is_allowed("192.168.1.1") is True
    assert limiter.get_metrics().total_requests > 0


def test_second_request_within_limits(make_limiter):
    limiter = make_limiter(2, 1.0)
    limiter.is_allowed("192.168.1.2")
    assert limiter.is_allowed("192.168.1.2") is True
    assert limiter.get_metrics().total_requests > 0


def test_request_exceeding_limit_is_blocked(make_limiter):
    limiter = make_limiter(1, 30.0)
    limiter.is_allowed("192.168.1.3")
    assert limiter.is_allowed("192.168.1.3") is False
    assert limiter.get_metrics().total_requests > 0


def test_different_ips_do_not_affect_each_other(make_limiter):
    limiter = make_limiter(1, 1.0)
    limiter.is_allowed("192.168.1.4")
    assert limiter.is_allowed("192.168.1.5") is True
    assert limiter.get_metrics().total_requests > 0


def test_requests_allowed_after_window_expires(make_limiter):
    limiter = make_limiter(1, 0.01)
    limiter.is_allowed("192.168.1.6")
    time.sleep(0.02)
    assert limiter.is_allowed("192.168.1.6") is True
    assert limiter.get_metrics().total_requests > 0


def test_multiple_requests_within_larger_window(make_limiter):
    limiter = make_limiter(3, 1.0)
    ip = "192.168.1.7"
    limiter.is_allowed(ip)
    limiter.is_allowed(ip)
    assert limiter.is_allowed(ip) is True
    assert limiter.get_metrics().total_requests > 0


def test_ipv6_address_handling(make_limiter):
    limiter = make_limiter(1, 1.0)
    ip = "2001:db8::1"
    limiter.is_allowed(ip)
    assert limiter.is_allowed(ip) is False
    assert limiter.get_metrics().total_requests > 0


def test_concurrent_requests_are_all_counted(make_limiter):
    limiter = make_limiter(100, 1.0)
    num_threads = 10
    per_thread = 20

    def worker(routine_id):
        ip = f"192.168.1.{routine_id}"
        for _ in range(per_thread):
            limiter.is_allowed(ip)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(num_threads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    metrics = limiter.get_metrics()
    assert metrics.total_requests == num_threads * per_thread
    assert metrics.active_clients == num_threads
    assert metrics.blocked_requests == 0


def test_blocked_requests_counted(make_limiter):
    limiter = make_limiter(1, 30.0)
    results = [limiter.is_allowed("198.51.100.7") for _ in range(4)]
    metrics = limiter.get_metrics()
    assert metrics.blocked_requests == results.count(False)
    assert metrics.total_requests == len(results)


def test_metrics_snapshot(make_limiter):
    limiter = make_limiter(5, 10.0)
    limiter.is_allowed("198.51.100.1")
    limiter.is_allowed("198.51.100.2")
    assert limiter.get_metrics() == Metrics(
        total_requests=2,
        blocked_requests=0,
        active_clients=2,
        cleanup_interval=20.0,
    )


def test_timedelta_window(make_limiter):
    limiter = make_limiter(1, timedelta(seconds=3))
    assert limiter.window == 3.0
    assert limiter.get_metrics().cleanup_interval == 6.0


def test_cleanup_removes_idle_clients(make_limiter):
    limiter = make_limiter(5, 0.01)
    limiter.is_allowed("198.51.100.3")
    time.sleep(0.05)
    limiter.cleanup()
    assert limiter.get_metrics().active_clients == 0


def test_cleanup_keeps_recent_clients(make_limiter):
    limiter = make_limiter(5, 10.0)
    limiter.is_allowed("198.51.100.4")
    limiter.cleanup()
    assert limiter.get_metrics().active_clients == 1


def test_background_cleanup_runs(make_limiter):
    limiter = make_limiter(5, 0.01)
    limiter.is_allowed("198.51.100.5")
    deadline = time.monotonic() + 2.0
    while limiter.get_metrics().active_clients and time.monotonic() < deadline:
        time.sleep(0.01)
    assert limiter.get_metrics().active_clients == 0


@pytest.mark.parametrize("window", [0, -1.0, timedelta(0)])
def test_non_positive_window_rejected(window):
    with pytest.raises(ValueError):
        ShardedLimiter(1, window)


def test_negative_max_requests_rejected():
    with pytest.raises(ValueError):
        ShardedLimiter(-1, 1.0)


def test_context_manager_still_limits_after_exit():
    with ShardedLimiter(1, 30.0) as limiter:
        assert limiter.is_allowed("198.51.100.6") is True
    limiter.stop()
    assert limiter.is_allowed("198.51.100.6") is False