"""Issue Investigator — HTTP entry point and execution API.

This file handles two concerns:

1. Intake — receives an issue report, validates it, and kicks off the
   investigation as a background task so the caller gets its 200 at once.

2. Results API — exposes read endpoints a client polls to get results.

Flow after an issue arrives:
    POST /api/investigate
        → validate IssueInput
        → create pending ExecutionRecord in store
        → start background task
        → return 200 + execution_id immediately

    background task:
        → InvestigationWorkflow.run()
        → update record to status="complete" (or "failed")

    client polls:
        GET /executions/latest  or  GET /executions/{id}
        → returns ExecutionRecord with status + RCA + test cases

Run locally:
    uvicorn main:app --reload
"""

import logging
import logging.handlers
import os
import pathlib
import uuid
from datetime import datetime, timezone
from typing import Literal

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from core.config import Settings
from core.workflow import InvestigationWorkflow
from display.markdown import render_rca_markdown, render_test_cases_markdown
from llm import build_client
from schemas.issue import IssueInput
from sre.integrations.notify import build_notifier
from sre.integrations.tracker import InMemoryTracker

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_FILE = pathlib.Path(__file__).parent / "investigator.log"
LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_file_handler = logging.handlers.RotatingFileHandler(
    LOG_FILE, maxBytes=1_000_000, backupCount=3, encoding="utf-8",
)
_file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

_root_logger = logging.getLogger()
_root_logger.setLevel(logging.INFO)
_root_logger.addHandler(_file_handler)

logger = logging.getLogger(__name__)

settings = Settings.from_env()

# ---------------------------------------------------------------------------
# App + CORS
# ---------------------------------------------------------------------------

app = FastAPI(title="Issue Investigator")

# ALLOWED_ORIGINS env var overrides the default for production deployments.
_origins = os.environ.get("ALLOWED_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Workflow setup
# ---------------------------------------------------------------------------

tracker = InMemoryTracker()
_workflow: InvestigationWorkflow | None = None


def get_workflow() -> InvestigationWorkflow:
    """Build the workflow on first use.

    Deferred so the app can start (and /health can answer) before an API
    key is configured. A missing key surfaces as a 503 on the first
    investigation instead of a crash at import.
    """
    global _workflow
    if _workflow is None:
        try:
            llm = build_client(settings)
        except KeyError as exc:
            logger.error("LLM client not configured: missing %s.", exc)
            raise HTTPException(status_code=503, detail=f"LLM client not configured: missing {exc}")
        _workflow = InvestigationWorkflow(settings, llm, tracker, build_notifier(settings.notify_webhook_url))
    return _workflow


# ---------------------------------------------------------------------------
# Execution store
# ---------------------------------------------------------------------------

class ExecutionRecord(BaseModel):
    """A single investigation run — what clients poll for.

    status lifecycle:
        "pending"  → created when the issue arrives, before analysis starts
        "complete" → workflow finished, RCA (and maybe test cases) populated
        "failed"   → workflow raised, error is set
    """
    execution_id: str
    status: Literal["pending", "complete", "failed"]
    issue: str = ""
    repository: str | None = None
    ticket_key: str | None = None
    ticket_url: str | None = None
    relevant_files: list[str] = []
    rca: dict | None = None
    rca_markdown: str | None = None
    test_cases: dict | None = None
    test_cases_markdown: str | None = None
    error: str | None = None
    created_at: str = ""


# In-memory store: execution_id → ExecutionRecord.
# Lost on server restart.
_store: dict[str, ExecutionRecord] = {}
_latest_id: str | None = None


def _save(record: ExecutionRecord) -> None:
    """Write a record to the store and update the latest pointer."""
    global _latest_id
    _store[record.execution_id] = record
    _latest_id = record.execution_id


# ---------------------------------------------------------------------------
# Background investigation task
# ---------------------------------------------------------------------------

async def _run_investigation(execution_id: str, issue: IssueInput, workflow: InvestigationWorkflow) -> None:
    """Run the workflow and update the store.

    All failures are caught and recorded as status="failed" so clients
    always get a terminal state rather than an entry stuck on "pending".
    """
    try:
        result = await workflow.run(issue, workflow_id=execution_id)
        _save(_store[execution_id].model_copy(update={
            "status": "complete",
            "repository": result.repository,
            "ticket_key": result.ticket.key,
            "ticket_url": result.ticket.url,
            "relevant_files": result.relevant_files,
            "rca": result.rca.model_dump(mode="json"),
            "rca_markdown": render_rca_markdown(result.rca),
            "test_cases": result.test_cases.model_dump(mode="json") if result.test_cases else None,
            "test_cases_markdown": render_test_cases_markdown(result.test_cases) if result.test_cases else None,
        }))
        logger.info(
            "Investigation %s complete. Incomplete RCA: %s. Test cases: %d.",
            execution_id,
            result.rca.incomplete,
            len(result.test_cases.test_cases) if result.test_cases else 0,
        )

    except Exception as exc:
        logger.error("Investigation failed for execution %s: %s", execution_id, exc)
        _save(_store[execution_id].model_copy(update={
            "status": "failed",
            "error": str(exc),
        }))


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/api/investigate")
async def investigate(
    issue: IssueInput,
    background_tasks: BackgroundTasks,
    workflow: InvestigationWorkflow = Depends(get_workflow),
):
    """Accept an issue, create a pending execution, return immediately.

    The execution_id returned here is what the client uses to poll
    GET /executions/{id} for results.
    """
    execution_id = f"workflow-{uuid.uuid4().hex[:12]}"
    _save(ExecutionRecord(
        execution_id=execution_id,
        status="pending",
        issue=issue.description,
        repository=issue.repository or settings.default_repository,
        created_at=datetime.now(timezone.utc).isoformat(),
    ))
    logger.info("Accepted issue → execution %s (pending).", execution_id)

    background_tasks.add_task(_run_investigation, execution_id, issue, workflow)

    return {"execution_id": execution_id, "status": "pending"}


# ---------------------------------------------------------------------------
# Results API — polling endpoints
# ---------------------------------------------------------------------------

@app.get("/executions/latest", response_model=ExecutionRecord)
def get_latest_execution():
    """Return the most recent execution record.

    Returns 404 if no executions have run yet.
    """
    if _latest_id is None or _latest_id not in _store:
        raise HTTPException(status_code=404, detail="No executions yet.")
    return _store[_latest_id]


@app.get("/executions/{execution_id}", response_model=ExecutionRecord)
def get_execution(execution_id: str):
    """Return a specific execution record by ID.

    Returns 404 if the execution_id is not found.
    """
    if execution_id not in _store:
        raise HTTPException(status_code=404, detail=f"Execution '{execution_id}' not found.")
    return _store[execution_id]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
