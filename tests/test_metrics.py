import threading
from time import perf_counter

from pageserver.observability.metrics import EXPOSITION_CONTENT_TYPE, MetricsRecorder, get_metrics, reset_metrics


def test_recorder_counts_requests_and_durations(metrics: MetricsRecorder) -> None:
    for _ in range(5):
        metrics.record_request("GET")
        metrics.record_response("GET", 200, perf_counter())
    for _ in range(3):
        metrics.record_request("POST")
        metrics.record_response("POST", 404, perf_counter())

    sample = metrics.registry.get_sample_value
    assert sample("http_requests_total", {"method": "GET"}) == 5
    assert sample("http_requests_total", {"method": "POST"}) == 3
    assert sample("http_requests_in_flight", {"method": "GET"}) == 0
    assert sample("http_requests_in_flight", {"method": "POST"}) == 0
    assert sample("http_request_duration_seconds_count", {"method": "GET", "status": "200"}) == 5
    assert sample("http_request_duration_seconds_count", {"method": "POST", "status": "404"}) == 3


def test_in_flight_gauge_tracks_open_requests(metrics: MetricsRecorder) -> None:
    metrics.record_request("GET")
    metrics.record_request("GET")
    assert metrics.registry.get_sample_value("http_requests_in_flight", {"method": "GET"}) == 2

    metrics.record_response("GET", 200, perf_counter())
    assert metrics.registry.get_sample_value("http_requests_in_flight", {"method": "GET"}) == 1


def test_recorder_is_thread_safe(metrics: MetricsRecorder) -> None:
    def worker(method: str) -> None:
        for _ in range(200):
            metrics.record_request(method)
            metrics.record_response(method, 200, perf_counter())

    threads = [threading.Thread(target=worker, args=("GET" if i % 2 == 0 else "POST",)) for i in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    sample = metrics.registry.get_sample_value
    assert sample("http_requests_total", {"method": "GET"}) == 1000
    assert sample("http_requests_total", {"method": "POST"}) == 1000
    assert sample("http_requests_in_flight", {"method": "GET"}) == 0
    assert sample("http_requests_in_flight", {"method": "POST"}) == 0


def test_recorders_do_not_share_state() -> None:
    first, second = MetricsRecorder(), MetricsRecorder()
    first.record_request("GET")

    assert first.registry.get_sample_value("http_requests_total", {"method": "GET"}) == 1
    assert second.registry.get_sample_value("http_requests_total", {"method": "GET"}) is None


def test_reset_metrics_replaces_process_recorder() -> None:
    before = get_metrics()
    assert get_metrics() is before
    reset_metrics()
    assert get_metrics() is not before


async def test_metrics_endpoint_renders_exposition(metrics_client, metrics: MetricsRecorder) -> None:
    metrics.record_request("GET")
    metrics.record_response("GET", 200, perf_counter())

    resp = await metrics_client.get("/metrics")

    assert resp.status_code == 200
    assert resp.headers["content-type"] == EXPOSITION_CONTENT_TYPE
    text = resp.text
    assert 'http_requests_total{method="GET"} 1.0' in text
    assert 'http_requests_in_flight{method="GET"} 0.0' in text
    assert "# TYPE http_request_duration_seconds histogram" in text
    assert 'http_request_duration_seconds_count{method="GET",status="200"} 1.0' in text


async def test_metrics_endpoint_does_not_count_itself(metrics_client, metrics: MetricsRecorder) -> None:
    await metrics_client.get("/metrics")
    resp = await metrics_client.get("/metrics")

    assert "http_requests_total{" not in resp.text


async def test_metrics_app_returns_404_for_other_paths(metrics_client) -> None:
    for path in ("/", "/metric", "/metrics/extra", "/docs"):
        resp = await metrics_client.get(path)
        assert resp.status_code == 404, path
        assert resp.text == "Not Found"


async def test_metrics_render_failure_returns_500(metrics_client, metrics: MetricsRecorder) -> None:
    def boom() -> bytes:
        raise RuntimeError("encoding failed")

    metrics.render = boom  # type: ignore[method-assign]

    resp = await metrics_client.get("/metrics")
    assert resp.status_code == 500

    # The listener keeps working once rendering recovers.
    del metrics.render
    assert (await metrics_client.get("/metrics")).status_code == 200


async def test_metrics_endpoint_answers_every_method(metrics_client, metrics: MetricsRecorder) -> None:
    metrics.record_request("GET")
    metrics.record_response("GET", 200, perf_counter())

    for method in ("HEAD", "POST", "PUT", "PROPFIND"):
        resp = await metrics_client.request(method, "/metrics")
        assert resp.status_code == 200, method
        assert resp.headers["content-type"] == EXPOSITION_CONTENT_TYPE

    resp = await metrics_client.post("/metrics")
    assert 'http_requests_total{method="GET"} 1.0' in resp.text


async def test_other_paths_are_404_for_every_method(metrics_client) -> None:
    for method in ("GET", "POST", "DELETE"):
        resp = await metrics_client.request(method, "/metrics/extra")
        assert resp.status_code == 404, method
