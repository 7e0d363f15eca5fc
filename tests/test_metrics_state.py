from __future__ import annotations

from hypothesis import given, strategies as st

from conftest import FakeClock
from pulse.metrics import MetricsState, normalize_path

statuses = st.sampled_from([200, 201, 204, 301, 304, 400, 404, 500, 503])


def _record(state: MetricsState, status: int, elapsed: float, url: str = "/") -> None:
    handle = state.record_request_start(url)
    assert state.record_request_end(handle, status, elapsed, 10)


def test_scenario_three_requests(state: MetricsState) -> None:
    for status, elapsed in zip([200, 200, 404], [10, 20, 30]):
        _record(state, status, elapsed)
    assert state.total_requests == 3
    assert state.error_count == 1
    assert state.average_response_ms() == 20
    assert state.success_rate() == 66.7
    assert state.error_rate() == 33.3
    assert state.status_code_counts == {"200": 2, "404": 1}
    assert state.total_bytes_sent == 30


@given(elapsed=st.lists(st.integers(min_value=0, max_value=60_000), min_size=1, max_size=50))
def test_average_min_max_match_inputs(elapsed: list[int]) -> None:
    state = MetricsState(clock=FakeClock())
    for value in elapsed:
        _record(state, 200, value)
    assert state.average_response_ms() == round(sum(elapsed) / len(elapsed))
    assert state.min_response_ms() == min(elapsed)
    assert state.max_response_time_ms == max(elapsed)
    assert state.min_response_ms() <= state.max_response_time_ms


@given(codes=st.lists(statuses, min_size=1, max_size=100))
def test_success_and_error_rates_sum_to_hundred(codes: list[int]) -> None:
    state = MetricsState(clock=FakeClock())
    for code in codes:
        _record(state, code, 5)
    assert abs(state.success_rate() + state.error_rate() - 100) <= 0.1 + 1e-9
    assert state.error_count == sum(1 for code in codes if code >= 400)


def test_empty_state_reports_neutral_values(state: MetricsState) -> None:
    assert state.min_response_time_ms is None
    assert state.min_response_ms() == 0
    assert state.max_response_time_ms == 0
    assert state.average_response_ms() == 0
    assert state.success_rate() == 100.0
    assert state.error_rate() == 0.0
    assert state.response_time_percentiles() == (0.0, 0.0, 0.0)


def test_start_updates_windows_and_last_request(state: MetricsState, clock: FakeClock) -> None:
    state.record_request_start("/a")
    clock.advance(30_000)
    state.record_request_start("/b")
    assert state.last_request_ms == clock.wall_ms
    assert state.per_minute.count_in_window(clock.mono_ms) == 2
    clock.advance(31_000)
    assert state.per_minute.count_in_window(clock.mono_ms) == 1
    assert state.per_hour.count_in_window(clock.mono_ms) == 2


def test_endpoints_are_normalized(state: MetricsState) -> None:
    state.record_request_start("/users?id=1")
    state.record_request_start("/users?id=2#top")
    state.record_request_start("http://example.com/health")
    state.record_request_start("")
    assert state.endpoint_counts == {"/users": 2, "/health": 1, "/": 1}


def test_normalize_path() -> None:
    assert normalize_path("/a/b?c=d") == "/a/b"
    assert normalize_path("?q=1") == "/"


def test_end_without_start_is_ignored(state: MetricsState) -> None:
    handle = state.record_request_start("/")
    assert state.record_request_end(handle, 200, 5, 0)
    assert not state.record_request_end(handle, 500, 50, 100)
    assert state.status_code_counts == {"200": 1}
    assert state.error_count == 0
    assert state.total_bytes_sent == 0
    assert state.max_response_time_ms == 5


def test_negative_elapsed_is_ignored(state: MetricsState) -> None:
    handle = state.record_request_start("/")
    assert not state.record_request_end(handle, 200, -1, 0)
    assert state.status_code_counts == {}
    assert state.in_flight == 1
    assert state.record_request_end(handle, 200, 1, 0)
    assert state.in_flight == 0


def test_bytes_received_accumulates(state: MetricsState) -> None:
    state.record_bytes_received(100)
    state.record_bytes_received(0)
    state.record_bytes_received(28)
    assert not state.record_bytes_received(-4)
    assert state.total_bytes_received == 128


def test_connections_never_go_negative(state: MetricsState) -> None:
    state.connection_closed()
    assert state.active_connections == 0
    state.connection_opened()
    state.connection_opened()
    state.connection_closed()
    assert state.active_connections == 1


def test_percentiles_use_recent_sample(clock: FakeClock) -> None:
    state = MetricsState(clock=clock, latency_sample_size=100)
    for value in range(1, 201):
        _record(state, 200, value)
    p50, p95, p99 = state.response_time_percentiles()
    # only the latest 100 values (101..200) are kept
    assert p50 == 150.5
    assert 190 < p95 < p99 <= 200


def test_average_counts_requests_still_in_flight(state: MetricsState) -> None:
    first = state.record_request_start("/a")
    state.record_request_start("/b")
    assert state.record_request_end(first, 200, 10, 0)
    assert state.in_flight == 1
    assert state.average_response_ms() == 5
    assert state.average_response_ms() == round(state.total_response_time_ms / state.total_requests)
