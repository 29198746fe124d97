import pytest
import httpx

from regen_gate import metrics


def _hist_count(hist, name):
    for metric in hist.collect():
        for sample in metric.samples:
            if sample.name.endswith('_count') and sample.labels.get('step') == name:
                return sample.value
    return 0


def test_track_step_success():
    @metrics.track_step
    def lint():
        return 'ok'

    success = metrics.STEP_SUCCESS.labels('lint')
    failure = metrics.STEP_FAILURE.labels('lint')

    before_success = success._value.get()
    before_failure = failure._value.get()
    before_count = _hist_count(metrics.STEP_LATENCY, 'lint')

    result = lint()

    assert result == 'ok'
    assert success._value.get() == before_success + 1
    assert failure._value.get() == before_failure
    assert _hist_count(metrics.STEP_LATENCY, 'lint') == before_count + 1


def test_track_step_failure():
    @metrics.track_step(name='build-static')
    def boom():
        raise RuntimeError('fail')

    success = metrics.STEP_SUCCESS.labels('build-static')
    failure = metrics.STEP_FAILURE.labels('build-static')

    before_success = success._value.get()
    before_failure = failure._value.get()

    with pytest.raises(RuntimeError):
        boom()

    assert success._value.get() == before_success
    assert failure._value.get() == before_failure + 1


def test_freshness_verdicts_counted(project):
    from regen_gate.freshness import check_freshness
    from regen_gate.git import GitRepo

    counter = metrics.FRESHNESS_CHECKS.labels('up-to-date')
    before = counter._value.get()

    check_freshness(GitRepo(project.fork / "dashboard"), project.config())

    assert counter._value.get() == before + 1


def test_start_metrics_server_exposes_metrics(monkeypatch):
    servers = {}

    def fake_start_http_server(port):
        import prometheus_client

        server, thread = prometheus_client.start_http_server(0)
        servers["server"] = server
        return server, thread

    monkeypatch.setattr(metrics, "start_http_server", fake_start_http_server)

    metrics.start_metrics_server()

    port = servers["server"].server_address[1]
    response = httpx.get(f"http://127.0.0.1:{port}/metrics")

    try:
        assert response.status_code == 200
        assert b"step_success_total" in response.content
    finally:
        servers["server"].shutdown()
