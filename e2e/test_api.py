"""API endpoint tests for the HTTP service.

The workflow dependency is overridden with one driven by a scripted model,
so no API key or network is needed. TestClient runs background tasks before
returning, so a POST is fully processed by the time it answers.
"""

import pytest
from fastapi.testclient import TestClient

import main
from core.config import Settings
from core.workflow import InvestigationWorkflow
from main import app, get_workflow
from sre.integrations.notify import LoggingNotifier
from sre.integrations.tracker import InMemoryTracker

from conftest import RCA_FINISH, TEST_CASE_FINISH, ScriptedLLM, reply, tool_call

client = TestClient(app)


@pytest.fixture(autouse=True)
def fresh_store(monkeypatch):
    monkeypatch.setattr(main, "_store", {})
    monkeypatch.setattr(main, "_latest_id", None)
    yield
    app.dependency_overrides.clear()


def use_llm(settings, llm):
    workflow = InvestigationWorkflow(settings, llm, InMemoryTracker(), LoggingNotifier())
    app.dependency_overrides[get_workflow] = lambda: workflow


def test_health():
    res = client.get("/health")
    assert res.json()["status"] == "ok"


def test_investigate_bad_payload(settings):
    use_llm(settings, ScriptedLLM())
    res = client.post("/api/investigate", json={"bad": "data"})
    assert res.status_code == 422


def test_no_executions_yet():
    assert client.get("/executions/latest").status_code == 404


def test_unknown_execution():
    assert client.get("/executions/workflow-nope").status_code == 404


@pytest.mark.usefixtures("requires_shell_tools")
def test_investigation_completes(settings):
    use_llm(settings, ScriptedLLM(
        reply(tool_call("finish", RCA_FINISH)),
        reply(tool_call("finish", TEST_CASE_FINISH)),
    ))
    res = client.post("/api/investigate", json={"description": "The login button is broken"})
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "pending"
    assert body["execution_id"].startswith("workflow-")

    record = client.get(f"/executions/{body['execution_id']}").json()
    assert record["status"] == "complete"
    assert record["repository"] == "acme/web"
    assert record["ticket_key"] == "INV-1"
    assert record["relevant_files"] == ["src/auth/login.js", "src/ui/button.js"]
    assert record["rca"]["root_cause"] == RCA_FINISH["root_cause"]
    assert record["rca_markdown"].startswith("## Automated RCA Analysis")
    assert record["test_cases"]["test_cases"][0]["type"] == "unit"
    assert "### 1. Login button submits credentials" in record["test_cases_markdown"]

    assert client.get("/executions/latest").json()["execution_id"] == body["execution_id"]


@pytest.mark.usefixtures("requires_shell_tools")
def test_investigation_failure_is_recorded(settings):
    use_llm(settings, ScriptedLLM())
    execution_id = client.post("/api/investigate", json={"description": "login broken"}).json()["execution_id"]

    record = client.get(f"/executions/{execution_id}").json()
    assert record["status"] == "failed"
    assert "script exhausted" in record["error"]


def test_missing_api_key_is_503(monkeypatch):
    monkeypatch.setattr(main, "settings", Settings(provider="openai"))
    monkeypatch.setattr(main, "_workflow", None)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    res = client.post("/api/investigate", json={"description": "login broken"})
    assert res.status_code == 503
