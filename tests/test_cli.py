import json

import pytest
from typer.testing import CliRunner

import maxflow.cli.main as cli_main
from maxflow.cli.main import app
from tests.mocks.api import FakeMaxflowAPI

runner = CliRunner()


@pytest.fixture(autouse=True)
def fake_client(monkeypatch, make_client):
    monkeypatch.setattr(cli_main, "build_client", make_client)


def test_push_pulses(fake_api: FakeMaxflowAPI):
    result = runner.invoke(
        app, ["push", '{"event": "a"}', '{"event": "b"}', "--debounce", "10"]
    )

    assert result.exit_code == 0
    assert "pulse 0 sent" in result.output
    assert "pulse 1 sent" in result.output
    assert fake_api.pushed_payloads == [{"event": "a"}, {"event": "b"}]


def test_push_reports_failed_pulse(fake_api: FakeMaxflowAPI):
    result = runner.invoke(app, ["push", '{"event": "a"}', '{"fail": true}', "--immediately"])

    assert result.exit_code == 1
    assert "pulse 0 sent" in result.output
    assert "pulse 1 failed" in result.output


def test_push_rejects_invalid_json():
    result = runner.invoke(app, ["push", "{not json"])

    assert result.exit_code == 2


def test_push_without_credentials(monkeypatch, make_client, config):
    monkeypatch.setattr(
        cli_main,
        "build_client",
        lambda: make_client(config=config.model_copy(update={"team_id": None})),
    )

    result = runner.invoke(app, ["push", '{"event": "a"}'])

    assert result.exit_code == 2
    assert "Team ID is not set" in result.output


def test_query_prints_encoded_value():
    result = runner.invoke(
        app,
        [
            "query",
            "--match",
            '[{"field": "status", "operator": "eq", "value": "active"}]',
            "--order-by",
            "ts",
            "--order",
            "desc",
        ],
    )

    assert result.exit_code == 0
    assert "%7B%22match%22" in result.output


def test_query_rejects_scalar_match():
    result = runner.invoke(app, ["query", "--match", "3"])

    assert result.exit_code == 2


def test_find_pulses(fake_api: FakeMaxflowAPI):
    result = runner.invoke(
        app, ["find", "--match", '{"status": {"$eq": "active"}}', "--page", "2"]
    )

    assert result.exit_code == 0
    sent_query = json.loads(fake_api.requests[0].url.params["o"])
    assert sent_query == {"match": {"status": {"$eq": "active"}}, "page": 2}


def test_get_missing_pulse_exits_with_error():
    result = runner.invoke(app, ["get", "pulse_404"])

    assert result.exit_code == 1
    assert "404" in result.output


def test_delete_pulses(fake_api: FakeMaxflowAPI):
    result = runner.invoke(app, ["delete", "pulse_1", "pulse_2"])

    assert result.exit_code == 0
    assert "2 pulse(s) deleted" in result.output
    assert json.loads(fake_api.requests[0].content) == ["pulse_1", "pulse_2"]


def test_run_and_status(fake_api: FakeMaxflowAPI):
    run_result = runner.invoke(
        app, ["run", "wf-1", "--data", '{"x": 1}', "--callback-url", "https://hook.test"]
    )
    status_result = runner.invoke(app, ["status", "exec-1"])

    assert run_result.exit_code == 0
    assert status_result.exit_code == 0
    assert fake_api.requests[0].url.path == "/api/workflow/run/wf-1"
    assert fake_api.requests[1].url.params["logId"] == "exec-1"
    assert "completed" in status_result.output
