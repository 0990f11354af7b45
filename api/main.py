"""
FastAPI main application for the SEO Crawl Automation API.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.auth import verify_api_key
from api.config import config as api_config
from api.models import (
    ErrorResponse, FrequencyRequest, HealthResponse, JobListResponse,
    PathSettings, RenameRequest, ScheduleValidationRequest
)
from crawler.models import CrawlRequest, CrawlResult
from crawler.pipeline import CrawlPipeline
from scheduler.events import EventBus
from scheduler.models import ErrorType, JobRequest, OperationResult, ValidationResult
from scheduler.scheduler_service import SchedulerService
from utilities.config import USER_EDITABLE_KEYS, AppSettings, load_settings, save_user_paths

logger = structlog.get_logger(__name__)

# Global services, created by the lifespan
app_settings: Optional[AppSettings] = None
scheduler_service: Optional[SchedulerService] = None
crawl_pipeline: Optional[CrawlPipeline] = None

ERROR_STATUS = {
    ErrorType.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorType.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorType.TRIGGER_CONSTRUCTION: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global app_settings, scheduler_service, crawl_pipeline

    logger.info("Starting SEO Crawl Automation API")

    app_settings = load_settings()
    events = EventBus()
    scheduler_service = SchedulerService(app_settings, events)
    crawl_pipeline = CrawlPipeline(app_settings, events)

    await scheduler_service.start()
    worker = asyncio.create_task(crawl_pipeline.consume(scheduler_service.due_jobs))

    yield

    logger.info("Shutting down SEO Crawl Automation API")
    worker.cancel()
    try:
        await worker
    except asyncio.CancelledError:
        pass
    scheduler_service.shutdown()


# Create FastAPI application
app = FastAPI(
    title=api_config.api_title,
    description="""
    Schedule Screaming Frog SEO Spider crawls and compare each run with the previous one.

    ## Features

    * **Schedules**: One-shot, daily, weekly and monthly crawl jobs that survive restarts
    * **Crawls**: Run a crawl immediately, optionally compared against the previous run
    * **Settings**: Crawler executable and output folders, persisted across restarts
    * **Authentication**: Optional bearer API keys

    ## Authentication

    When API keys are configured, include one in the Authorization header:

    ```
    Authorization: Bearer your_api_key_here
    ```
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


# Exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.detail,
            status_code=exc.status_code
        ).model_dump(),
        headers=exc.headers
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if api_config.debug else None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).model_dump()
    )


def get_scheduler() -> SchedulerService:
    if scheduler_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduler service not available"
        )
    return scheduler_service


def get_pipeline() -> CrawlPipeline:
    if crawl_pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Crawl pipeline not available"
        )
    return crawl_pipeline


def get_settings() -> AppSettings:
    if app_settings is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Settings not loaded"
        )
    return app_settings


def path_settings(settings: AppSettings) -> PathSettings:
    return PathSettings(**{key: str(getattr(settings, key)) for key in USER_EDITABLE_KEYS})


def operation_response(result: OperationResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """Structured body always; HTTP status mapped from the failure category."""
    if result.success:
        status_code = success_status
    else:
        status_code = ERROR_STATUS.get(result.error_type, status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    if scheduler_service is None:
        return HealthResponse(
            status="starting",
            timestamp=datetime.utcnow(),
            version=api_config.api_version
        )

    scheduler_status = scheduler_service.get_scheduler_status()
    return HealthResponse(
        status="healthy" if scheduler_status["running"] else "degraded",
        timestamp=datetime.utcnow(),
        version=api_config.api_version,
        scheduler=scheduler_status
    )


# Schedule endpoints
@app.get("/schedules", response_model=JobListResponse, tags=["Schedules"])
async def list_schedules(api_key: Optional[str] = Depends(verify_api_key)):
    """List scheduled jobs with their next run time."""
    jobs = get_scheduler().list_jobs()
    return JobListResponse(jobs=jobs, total=len(jobs))


@app.post("/schedules", tags=["Schedules"])
async def create_schedule(job_request: JobRequest, api_key: Optional[str] = Depends(verify_api_key)):
    """
    Schedule a crawl.

    - **date**: Anchor date (YYYY-MM-DD), must be in the future together with time
    - **time**: Anchor time (HH:MM or HH:MM:SS)
    - **frequency**: once, daily, weekly or monthly
    - **crawl_config**: Crawl request run when the job fires
    """
    result = await get_scheduler().add(job_request)
    return operation_response(result, success_status=status.HTTP_201_CREATED)


@app.post("/schedules/validate", response_model=ValidationResult, tags=["Schedules"])
async def validate_schedule(
    validation_request: ScheduleValidationRequest,
    api_key: Optional[str] = Depends(verify_api_key)
):
    """Check a date and time without creating a job."""
    return get_scheduler().validate(validation_request.date, validation_request.time)


@app.post("/schedules/{job_id}/cancel", tags=["Schedules"])
async def cancel_schedule(job_id: str, api_key: Optional[str] = Depends(verify_api_key)):
    result = await get_scheduler().cancel(job_id)
    return operation_response(result)


@app.delete("/schedules/{job_id}", tags=["Schedules"])
async def delete_schedule(job_id: str, api_key: Optional[str] = Depends(verify_api_key)):
    result = await get_scheduler().delete(job_id)
    return operation_response(result)


@app.patch("/schedules/{job_id}/name", tags=["Schedules"])
async def rename_schedule(
    job_id: str,
    rename_request: RenameRequest,
    api_key: Optional[str] = Depends(verify_api_key)
):
    result = await get_scheduler().update_name(job_id, rename_request.name)
    return operation_response(result)


@app.patch("/schedules/{job_id}/frequency", tags=["Schedules"])
async def update_schedule_frequency(
    job_id: str,
    frequency_request: FrequencyRequest,
    api_key: Optional[str] = Depends(verify_api_key)
):
    """Change how often a job repeats; its trigger is rebuilt from the original anchor."""
    result = await get_scheduler().update_frequency(job_id, frequency_request.frequency)
    return operation_response(result)


# Crawl endpoints
@app.post("/crawls", response_model=CrawlResult, tags=["Crawls"])
async def run_crawl(crawl_request: CrawlRequest, api_key: Optional[str] = Depends(verify_api_key)):
    """
    Run a crawl now and wait for it to finish.

    A failed crawl answers 502 with the structured result; comparison
    problems only show up as warnings.
    """
    result = await get_pipeline().run(crawl_request)
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=result.model_dump(mode="json")
        )
    return result


# Settings endpoints
@app.get("/settings/paths", response_model=PathSettings, tags=["Settings"])
async def get_path_settings(api_key: Optional[str] = Depends(verify_api_key)):
    return path_settings(get_settings())


@app.put("/settings/paths", response_model=PathSettings, tags=["Settings"])
async def update_path_settings(
    paths_request: PathSettings,
    api_key: Optional[str] = Depends(verify_api_key)
):
    """
    Persist new folders or crawler executable location.

    Takes effect for the next crawl; running crawls keep their folders.
    """
    settings = get_settings()
    try:
        updated = save_user_paths(settings, paths_request.model_dump(exclude_none=True))
    except (OSError, ValidationError) as e:
        logger.error("Failed to save path settings", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Settings not saved: {e}")

    # services hold this same settings object
    for key in USER_EDITABLE_KEYS:
        setattr(settings, key, getattr(updated, key))
    return path_settings(settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level="info"
    )
