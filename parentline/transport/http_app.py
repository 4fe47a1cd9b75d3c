# parentline/transport/http_app.py
"""
HTTP application: dispatch triggers with live progress, plus the
automation proxies.

Endpoints:
1. Dispatch (SSE): ``/send``, ``/send-menu``, ``/jobs/{dataset}/stream``
2. Automation proxies: ``/student-status``, ``/api/teacher-analysis-report``
3. Ops: ``/health``, ``/datasets``, ``/metrics``

Each dispatch request starts one runner task with its own event sink and
streams that sink to the client until ``[DONE]``.
"""
from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from parentline.config import settings, warn_on_risky_config
from parentline.core.dispatch import (
    DAILY_REPORT,
    WEEKLY_MENU,
    DatasetRegistry,
    DispatchJobRunner,
    build_default_registry,
)
from parentline.infra.automation_client import (
    AutomationBadResponse,
    AutomationClient,
    AutomationNotConfigured,
    AutomationUnavailable,
)
from parentline.infra.event_stream import QueueEventSink
from parentline.infra.http_client import close_all_sessions
from parentline.infra.logging_config import get_logger, setup_logging
from parentline.infra.metrics import get_metrics_collector
from parentline.infra.sheets_source import GoogleSheetsRecipientSource
from parentline.infra.twilio_channel import TwilioWhatsAppChannel
from parentline.transport.middleware import (
    ErrorHandlingMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
)
from parentline.transport.schemas import DatasetOut, DatasetsOut, HealthOut

# Initialize logging first
setup_logging(
    level=settings.log_level,
    use_json=settings.is_production
)

logger = get_logger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Strong references to running jobs; the event loop only keeps weak ones.
_running_jobs: set[asyncio.Task] = set()


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_registry(request: Request) -> DatasetRegistry:
    """Get dataset registry from app state"""
    return request.app.state.registry


def get_runner(request: Request) -> DispatchJobRunner:
    """Get dispatch runner from app state"""
    return request.app.state.runner


def get_automation(request: Request) -> AutomationClient:
    """Get automation webhook client from app state"""
    return request.app.state.automation


# ============================================================================
# LIFESPAN
# ============================================================================

@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Application lifecycle: startup and shutdown"""

    # STARTUP
    logger.info(f"Starting application: env={settings.app_env}")

    if settings.is_production:
        missing = settings.validate_required_for_production()
        if missing:
            logger.critical(f"Missing required production settings: {missing}")
            raise RuntimeError(f"Missing production config: {missing}")

        if settings.log_level.upper() == "DEBUG":
            logger.critical("LOG_LEVEL=DEBUG is not allowed in production")
            raise RuntimeError("LOG_LEVEL=DEBUG in production")

    for warning in warn_on_risky_config(settings):
        logger.warning(f"Config: {warning}")

    registry = build_default_registry(
        daily_report_range=settings.daily_report_range,
        weekly_menu_range=settings.weekly_menu_range,
    )
    fastapi_app.state.registry = registry
    fastapi_app.state.runner = DispatchJobRunner(
        source=GoogleSheetsRecipientSource.from_settings(),
        channel=TwilioWhatsAppChannel.from_settings(),
        datasets=registry,
    )
    fastapi_app.state.automation = AutomationClient.from_settings()

    logger.info(f"Datasets registered: {registry.names()}")
    if not settings.twilio_enabled:
        logger.warning("Twilio credentials incomplete: every send will be reported as failed")
    logger.info("Application startup complete")

    yield

    # SHUTDOWN
    logger.info("Shutting down application")

    if _running_jobs:
        # Streams are closed by now; leftover jobs have no audience.
        logger.warning(f"Cancelling {len(_running_jobs)} running dispatch job(s)")
        for task in list(_running_jobs):
            task.cancel()
        await asyncio.gather(*_running_jobs, return_exceptions=True)

    await close_all_sessions()
    logger.info("Application shutdown complete")


# ============================================================================
# CREATE APP
# ============================================================================

app = FastAPI(
    title="Parentline",
    description="Bulk parent messaging with live progress streaming",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
)

# CORS - Restrictive in production
if settings.is_production or settings.is_staging:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins if settings.allowed_origins != ["*"] else [],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )
else:
    # Dashboard dev server runs on another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Add custom middleware (order matters - last added runs first)
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(RequestLoggingMiddleware, enabled=settings.enable_request_logging)
app.add_middleware(RequestIDMiddleware)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with appropriate logging"""
    if exc.status_code >= 500:
        logger.error(f"Server error: {exc.detail}", extra={"status_code": exc.status_code})

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.error(f"Unhandled exception: {exc.__class__.__name__}", exc_info=True)
    message = "An error occurred" if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content={"error": message})


# ============================================================================
# DISPATCH (SSE)
# ============================================================================

def _stream_job(runner: DispatchJobRunner, dataset_name: str) -> StreamingResponse:
    """Start a dispatch job in the background and stream its progress."""
    sink = QueueEventSink(maxsize=settings.event_queue_size)
    job_id = uuid.uuid4().hex[:8]

    task = asyncio.create_task(
        runner.run(dataset_name, sink, job_id=job_id),
        name=f"dispatch-{dataset_name}-{job_id}",
    )
    _running_jobs.add(task)
    task.add_done_callback(_running_jobs.discard)

    logger.info(
        f"Dispatch job queued: job_id={job_id}",
        extra={"job_id": job_id, "dataset": dataset_name},
    )

    return StreamingResponse(
        sink.sse(heartbeat_seconds=settings.sse_heartbeat_seconds),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.get("/send")
async def send_daily_reports(runner: DispatchJobRunner = Depends(get_runner)):
    """Send the daily report to every parent, streaming progress lines."""
    return _stream_job(runner, DAILY_REPORT)


@app.get("/send-menu")
async def send_weekly_menu(runner: DispatchJobRunner = Depends(get_runner)):
    """Broadcast the weekly menu to every distinct parent number."""
    return _stream_job(runner, WEEKLY_MENU)


@app.get("/jobs/{dataset}/stream")
async def stream_dataset_job(
    dataset: str,
    runner: DispatchJobRunner = Depends(get_runner),
    registry: DatasetRegistry = Depends(get_registry),
):
    if dataset not in registry:
        raise HTTPException(status_code=404, detail=f"Unknown dataset: {dataset}")
    return _stream_job(runner, dataset)


# ============================================================================
# AUTOMATION PROXIES
# ============================================================================

@app.get("/student-status")
async def student_status(automation: AutomationClient = Depends(get_automation)):
    """Proxy the status webhook; its JSON is returned as-is."""
    try:
        data = await automation.fetch_status()
    except AutomationNotConfigured as exc:
        return JSONResponse(status_code=500, content={"message": exc.detail})
    except AutomationBadResponse as exc:
        return JSONResponse(status_code=500, content={"message": exc.detail, "raw": exc.raw})
    except AutomationUnavailable as exc:
        return JSONResponse(status_code=500, content={"message": "Server error", "details": exc.detail})

    return JSONResponse(status_code=200, content=data)


@app.post("/api/teacher-analysis-report")
async def teacher_analysis_report(
    request: Request,
    automation: AutomationClient = Depends(get_automation),
):
    """
    Forward the request body to the analysis webhook.

    Blocks until the automation finishes; the webhook session timeout
    bounds the wait.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")

    try:
        report = await automation.run_analysis(payload)
    except AutomationNotConfigured as exc:
        return JSONResponse(
            status_code=500,
            content={"error": exc.detail, "details": "ANALYSIS_WEBHOOK_URL is not set"},
        )
    except AutomationBadResponse as exc:
        return JSONResponse(status_code=500, content={"error": exc.detail, "details": exc.raw})
    except AutomationUnavailable as exc:
        return JSONResponse(
            status_code=500,
            content={"error": "Automation unreachable", "details": exc.detail},
        )

    return JSONResponse(status_code=200, content=report)


# ============================================================================
# OPS
# ============================================================================

@app.get("/health", response_model=HealthOut)
def health():
    """Basic liveness check."""
    return {"status": "healthy"}


@app.get("/datasets", response_model=DatasetsOut)
def list_datasets(registry: DatasetRegistry = Depends(get_registry)):
    return DatasetsOut(
        datasets=[
            DatasetOut(
                name=spec.name,
                kind=spec.kind.value,
                title=spec.title,
                stream_url=f"/jobs/{spec.name}/stream",
            )
            for spec in registry
        ]
    )


@app.get("/metrics")
def metrics():
    """In-process counters and histograms."""
    if not settings.enable_metrics:
        raise HTTPException(status_code=404, detail="Not found")
    return get_metrics_collector().get_metrics()


# ============================================================================
# CATCH-ALL (Return 404 for unknown routes)
# ============================================================================

@app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
async def catch_all(path: str):
    logger.warning(f"404 - Unknown route accessed: {path}")
    raise HTTPException(status_code=404, detail="Not found")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "parentline.transport.http_app:app",
        host="0.0.0.0",
        port=settings.port,
        reload=not settings.is_production,
        log_level=settings.log_level.lower(),
        access_log=not settings.is_production,
        server_header=False,
        date_header=False,
    )
