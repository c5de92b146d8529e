import logging
import os
import re
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from studylog.db import PoolTimeout, get_db, pool_from_env
from studylog.logs import LogStore
from studylog.schema import init_database
from studylog.subjects import SubjectStore

# -------------------------------------------------
# Config
# -------------------------------------------------
# DB_PATH / DB_POOL_SIZE / DB_POOL_TIMEOUT are read in db.py at startup.
load_dotenv()

RECENT_LIMIT = 10

# ASCII digits only; sqlite integers are signed 64-bit.
INTEGER_RE = re.compile(r"[+-]?[0-9]{1,19}")
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=Path(__file__).parent / "templates")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the connection pool and create the tables on startup."""
    logger.info("Running startup tasks...")
    pool = pool_from_env()
    try:
        with pool.connection() as conn:
            init_database(conn)
        app.state.pool = pool
        logger.info("Startup tasks complete.")
        yield
    finally:
        pool.close()
        logger.info("Connection pool closed.")


app = FastAPI(lifespan=lifespan)


# -------------------------------------------------
# Error handlers
# -------------------------------------------------


@app.exception_handler(StarletteHTTPException)
async def plain_text_http_error(request: Request, exc: StarletteHTTPException):
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(sqlite3.Error)
async def database_error(request: Request, exc: sqlite3.Error):
    # The raw database message stays in the log, never in the response.
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return PlainTextResponse("Internal Server Error", status_code=500)


@app.exception_handler(PoolTimeout)
async def pool_timeout(request: Request, exc: PoolTimeout):
    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return PlainTextResponse("Service Unavailable", status_code=503)


# -------------------------------------------------
# Dependencies
# -------------------------------------------------


def get_subject_store(conn: sqlite3.Connection = Depends(get_db)) -> SubjectStore:  # noqa: B008
    return SubjectStore(conn)


def get_log_store(conn: sqlite3.Connection = Depends(get_db)) -> LogStore:  # noqa: B008
    return LogStore(conn)


# -------------------------------------------------
# Helpers
# -------------------------------------------------


def _parse_int(value: str, field: str) -> int:
    """Parse a form field as a signed 64-bit integer, or fail the request with a 400."""
    if not INTEGER_RE.fullmatch(value) or not INT64_MIN <= int(value) <= INT64_MAX:
        raise HTTPException(status_code=400, detail=f"Invalid {field}: {value!r} is not an integer")
    return int(value)


def _format_hours(value: float) -> str:
    """3.0 -> '3', 2.5 -> '2.5'"""
    return f"{value:g}"


templates.env.filters["hours"] = _format_hours


# -------------------------------------------------
# Routes
# -------------------------------------------------


@app.get("/", response_class=HTMLResponse, summary="List subjects and the latest logs")
def list_page(
    request: Request,
    subjects: SubjectStore = Depends(get_subject_store),  # noqa: B008
    logs: LogStore = Depends(get_log_store),  # noqa: B008
):
    return templates.TemplateResponse(
        request,
        "list.html",
        {"subjects": subjects.list(), "logs": logs.recent(RECENT_LIMIT)},
    )


@app.post("/save-subject", summary="Add a subject")
def save_subject(
    subject: str = Form(""),
    subjects: SubjectStore = Depends(get_subject_store),  # noqa: B008
):
    if subject == "":
        raise HTTPException(status_code=400, detail="Subject not entered")

    subject_id = subjects.add(subject)
    logger.info(f"Saved subject {subject_id}: {subject!r}")
    return RedirectResponse("/", status_code=302)


@app.post("/save", summary="Add a study log (legacy path)")
@app.post("/save-log", summary="Add a study log")
def save_log(
    subject: str = Form(""),
    duration: str = Form(""),
    logs: LogStore = Depends(get_log_store),  # noqa: B008
):
    """`subject` carries the subject id; `duration` is whole hours."""
    if subject == "":
        raise HTTPException(status_code=400, detail="Subject not entered")
    subject_id = _parse_int(subject, "subject")
    hours = _parse_int(duration, "duration")

    log_id = logs.add(subject_id, hours)
    logger.info(f"Saved log {log_id}: subject={subject_id} duration={hours}h")
    return RedirectResponse("/", status_code=302)


@app.get("/summary", response_class=HTMLResponse, summary="Totals by subject and by month")
def summary_page(request: Request, logs: LogStore = Depends(get_log_store)):  # noqa: B008
    return templates.TemplateResponse(
        request,
        "summary.html",
        {"by_subject": logs.summarize_by_subject(), "by_month": logs.summarize_by_month()},
    )


# -------------------------------------------------
# Run directly
# -------------------------------------------------


def run():
    import uvicorn

    host = os.environ.get("HOST", "127.0.0.1")
    port = int(os.environ.get("PORT", "8080"))
    logger.info(f"Serving on http://{host}:{port}")
    uvicorn.run("studylog.main:app", host=host, port=port)


if __name__ == "__main__":
    run()
