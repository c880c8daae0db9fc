from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, status, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import sqlalchemy.exc

from config.settings import get_settings
from core.database.operations import get_db, get_candidate_products
from core.updater.batch import BatchRunner, create_runner
from core.updater.update_log import tail

from .models import (
    Product,
    RunResponse,
    ScheduleInfo,
    UnscheduleResponse,
    LogResponse,
    ErrorResponse,
)

_runner: Optional[BatchRunner] = None


def get_runner() -> BatchRunner:
    """Return the process-wide runner, building it on first use."""
    global _runner
    if _runner is None:
        _runner = create_runner()
    return _runner


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Fire scheduled runs from this process when enabled
    scheduler = None
    if get_settings().START_SCHEDULER:
        scheduler = get_runner().scheduler
        scheduler.install()
        scheduler.start()
    yield
    if scheduler:
        scheduler.stop()


app = FastAPI(
    title="Barcode Auto Updater",
    description="Admin API for the barcode-driven catalog updater",
    version="1.1.0",
    lifespan=lifespan,
)


def schedule_info(runner: BatchRunner, run_at: Optional[int]) -> ScheduleInfo:
    return ScheduleInfo(
        hook=runner.scheduler.hook,
        next_run_at=run_at,
        next_run=datetime.fromtimestamp(run_at) if run_at is not None else None,
    )


@app.get("/", tags=["General"])
async def root():
    """Root endpoint providing API information."""
    return {
        "name": "Barcode Auto Updater",
        "version": "1.1.0",
        "endpoints": {
            "GET /": "This information",
            "POST /run": "Run one full update pass now",
            "GET /schedule": "Show the pending scheduled run",
            "POST /schedule/install": "Arm a run unless one is pending",
            "DELETE /schedule": "Cancel pending runs",
            "GET /candidates": "Products the next run will look at",
            "GET /log": "Latest update log lines",
        },
    }


@app.post(
    "/run",
    response_model=RunResponse,
    responses={409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Updates"],
)
def run_update(runner: BatchRunner = Depends(get_runner)):
    """Run the update synchronously; returns when every candidate is done."""
    try:
        summary = runner.run_once()
    except sqlalchemy.exc.SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Database error: {str(e)}",
        ) from e

    if summary.skipped:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An update run is already in progress",
        )

    return RunResponse(
        message="Update Processed!",
        processed=summary.processed,
        updated=summary.updated,
        failed=summary.failed,
        skipped_no_sku=summary.skipped_no_sku,
        next_run_at=summary.next_run_at,
    )


@app.get("/schedule", response_model=ScheduleInfo, tags=["Schedule"])
async def get_schedule(runner: BatchRunner = Depends(get_runner)):
    """Get the pending scheduled run."""
    return schedule_info(runner, runner.scheduler.next_run())


@app.post("/schedule/install", response_model=ScheduleInfo, tags=["Schedule"])
async def install_schedule(runner: BatchRunner = Depends(get_runner)):
    """Arm the next run unless one is already pending."""
    return schedule_info(runner, runner.scheduler.install())


@app.delete("/schedule", response_model=UnscheduleResponse, tags=["Schedule"])
async def uninstall_schedule(runner: BatchRunner = Depends(get_runner)):
    """Cancel pending runs."""
    return UnscheduleResponse(removed=runner.scheduler.uninstall())


@app.get(
    "/candidates",
    response_model=List[Product],
    responses={500: {"model": ErrorResponse}},
    tags=["Catalog"],
)
async def get_candidates(
    limit: int = Query(50, ge=1, le=1000), db: Session = Depends(get_db)
):
    """Get the products the next run will look at."""
    try:
        products = get_candidate_products(db, match=get_settings().CANDIDATE_MATCH)
        return [Product.model_validate(product) for product in products[:limit]]
    except sqlalchemy.exc.SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error retrieving candidates: {str(e)}",
        ) from e


@app.get("/log", response_model=LogResponse, tags=["Updates"])
async def get_log(
    limit: int = Query(20, ge=1, le=1000), runner: BatchRunner = Depends(get_runner)
):
    """Get the latest update log lines."""
    lines = tail(runner.update_logger.path, limit)
    return LogResponse(lines=lines, count=len(lines))


# Error handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(_request, exc):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def general_exception_handler(_request, exc):
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Unexpected error: {str(exc)}"},
    )


# Run with: uvicorn api.main:app --reload
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=8000, reload=True)
