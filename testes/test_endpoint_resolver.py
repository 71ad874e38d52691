import pytest
import requests

from src.migrators.endpoints import EndpointResolver, RateLimiter, candidate_urls, with_retries
from src.utils.errors import EndpointUnreachable

from conftest import make_response

A = "https://a.example/entries"
B = "https://b.example/entries"
C = "https://c.example/entries"


def resolver_for(session, **kwargs):
    kwargs.setdefault("max_attempts", 1)
    kwargs.setdefault("sleep_fn", lambda s: None)
    return EndpointResolver(session, **kwargs)


def test_first_success_wins_and_later_candidates_are_not_called(make_session):
    session = make_session(lambda method, url, kw: (404, "not here") if url == A else (200, {"ok": url}))
    resolver = resolver_for(session)

    call = resolver.request("list_entries", "GET", [A, B, C])

    assert call.url == B
    assert call.response.json() == {"ok": B}
    assert session.urls() == [A, B]


def test_resolve_returns_url_and_reprobes_every_call(make_session):
    session = make_session(lambda method, url, kw: (500, "down") if url == A else (200, {}))
    resolver = resolver_for(session)

    assert resolver.resolve("list_entries", [A, B, C]) == B
    assert resolver.resolve("list_entries", [A, B, C]) == B
    # nothing is remembered between calls
    assert session.urls() == [A, B, A, B]


def test_all_candidates_failing_raises_with_last_status(make_session):
    def handler(method, url, kw):
        return (401, "bad token") if url == C else (404, "missing")

    resolver = resolver_for(make_session(handler))
    with pytest.raises(EndpointUnreachable) as info:
        resolver.request("update_entry", "PUT", [A, B, C], json={})

    assert info.value.operation == "update_entry"
    assert info.value.last_status == 401
    assert info.value.last_error == "bad token"
    assert "update entry" in str(info.value)


def test_connection_errors_move_to_next_candidate(make_session):
    def handler(method, url, kw):
        if url == A:
            return requests.ConnectionError("refused")
        return (200, {"results": []})

    session = make_session(handler)
    assert resolver_for(session).resolve("list_assets", [A, B]) == B


def test_error_text_is_truncated(make_session):
    resolver = resolver_for(make_session(lambda method, url, kw: (400, "x" * 500)))
    with pytest.raises(EndpointUnreachable) as info:
        resolver.request("get_entry", "GET", [A])
    assert len(info.value.last_error) == 200


def test_no_candidates_raises(make_session):
    with pytest.raises(EndpointUnreachable):
        resolver_for(make_session(lambda *a: (200, {}))).request("get_entry", "GET", [])


def test_transient_status_is_retried_on_the_same_candidate(make_session):
    statuses = iter([503, 200])
    sleeps = []
    session = make_session(lambda method, url, kw: (next(statuses), {}))
    resolver = EndpointResolver(session, max_attempts=3, sleep_fn=sleeps.append)

    assert resolver.resolve("list_entries", [A, B]) == A
    assert session.urls() == [A, A]
    assert len(sleeps) == 1


def test_files_factory_rebuilds_upload_body_per_attempt(make_session):
    built = []

    def factory():
        built.append(1)
        return {"file": ("a.jpg", b"data", "image/jpeg")}

    session = make_session(lambda method, url, kw: (200, {}) if url == B else (404, ""))
    resolver_for(session).request("upload_asset", "POST", [A, B], files_factory=factory)

    assert len(built) == 2
    assert all("files" in kw for _, _, kw in session.calls)


def test_with_retries_honours_retry_after():
    throttled = make_response(429)
    throttled.headers["Retry-After"] = "2"
    responses = iter([throttled, make_response(200, {"ok": True})])
    sleeps = []

    resp = with_retries(lambda: next(responses), max_attempts=3, sleep_fn=sleeps.append)

    assert resp.json() == {"ok": True}
    assert sleeps == [2.0]


def test_with_retries_does_not_retry_client_errors():
    calls = []

    def fn():
        calls.append(1)
        return make_response(404, "missing")

    with pytest.raises(requests.HTTPError):
        with_retries(fn, max_attempts=3, sleep_fn=lambda s: None)
    assert len(calls) == 1


def test_candidate_urls_order_and_dedup():
    urls = candidate_urls("https://uniform.app/api", "https://uniform.app", "p1", "entries/e1")
    assert urls == [
        "https://uniform.app/api/v1/projects/p1/entries/e1",
        "https://uniform.app/api/projects/p1/entries/e1",
    ]

    urls = candidate_urls("https://gw.example/api", "https://uniform.app", "p1", "assets")
    assert urls == [
        "https://gw.example/api/v1/projects/p1/assets",
        "https://uniform.app/api/v1/projects/p1/assets",
        "https://gw.example/api/projects/p1/assets",
        "https://uniform.app/api/projects/p1/assets",
    ]


def test_rate_limiter_sleeps_for_remaining_interval():
    times = iter([10.0, 10.0, 10.2, 10.5])
    sleeps = []
    limiter = RateLimiter(rpm=120)  # 0.5s interval

    limiter.wait(time_fn=lambda: next(times), sleep_fn=sleeps.append)
    limiter.wait(time_fn=lambda: next(times), sleep_fn=sleeps.append)

    assert sleeps == [pytest.approx(0.3)]
