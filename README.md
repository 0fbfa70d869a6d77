# windowlimit

Rate limiting middleware for WSGI applications. Each client IP address is
allowed a fixed number of requests per time window. Requests are counted with
a weighted sliding window: the count from the previous window is weighted by
how much of it still overlaps the current one, so bursts across a window
boundary are smoothed out.

## Installation

```
pip install windowlimit
```

## Wrapping an application

```python
from windowlimit.middleware import wrap

def app(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain")])
    return [b"hello\n"]

# At most 100 requests per client IP every 60 seconds.
limited, get_metrics = wrap(app, max_requests=100, window=60.0)
```

`wrap(app, max_requests, window)` returns a pair: a `RateLimitMiddleware`,
which is itself a WSGI application, and a function that returns the current
metrics. The middleware can also be built directly with
`RateLimitMiddleware(app, max_requests, window)`.

`window` is either a number of seconds or a `datetime.timedelta`. A negative
`max_requests` or a window that is not positive raises `ValueError`.

For each request the middleware:

1. takes the client IP from the leftmost valid address in the
   `X-Forwarded-For` header (`HTTP_X_FORWARDED_FOR`), falling back to
   `REMOTE_ADDR`, with or without a port;
2. answers `403 Forbidden` with the body `Forbidden - Invalid IP` if no valid
   IP address can be found;
3. answers `429 Too Many Requests` with the body `Rate limit exceeded` once
   the client has used up its allowance;
4. otherwise passes the request on to the wrapped application.

A client's first request, and its first request after a full window has
passed, is always allowed.

Clients whose window started more than two windows ago are removed by a
background daemon thread that runs every two windows. Call `limited.close()`
when shutting down to stop it.

## Metrics

```python
m = get_metrics()          # or limited.metrics()
print(m.total_requests, m.blocked_requests, m.active_clients, m.cleanup_interval)
```

`Metrics` is a frozen dataclass; `cleanup_interval` is in seconds.

## Using the limiter directly

```python
from windowlimit.limiter import ShardedLimiter

with ShardedLimiter(max_requests=5, window=1.0) as limiter:
    if limiter.is_allowed("203.0.113.7"):
        ...
```

`ShardedLimiter` spreads clients over 256 shards to reduce lock contention.
The cleanup thread starts when the limiter is created; `stop()` (or leaving
the `with` block) stops it, `start_cleanup()` starts it again, and
`cleanup()` runs one cleanup pass immediately. `get_metrics()` returns a
`Metrics` snapshot.

## IP helpers

`windowlimit.clientip` provides:

- `clean_ip(ip)`: returns the address in canonical form, with surrounding
  brackets removed and IPv4-mapped IPv6 addresses reduced to IPv4, or `None`
  if it is not a valid IP address (addresses with a zone such as `%eth0` are
  rejected);
- `get_client_ip(remote_addr, forwarded_for)`: returns the client address as
  described above, or raises `InvalidAddressError` (a `ValueError`) when no
  usable address is found.

## What this package does not do

It is middleware only: it provides no server and no command-line tool, and
its counters live in process memory, so limits are not shared between
processes or kept across restarts. `X-Forwarded-For` is always trusted; there
is no setting to restrict it to known proxies.

## Running the tests

```
pip install -e ".[test]"
pytest
```