"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation and service wiring.
"""

from __future__ import annotations

from fastapi import BackgroundTasks, File, HTTPException, UploadFile, status

from app.services.run_orchestrator import FastAPIBackgroundTaskExecutor, PipelineTaskExecutor

CSV_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "application/vnd.ms-excel",
}


def get_csv_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the uploaded file is a CSV by extension or MIME type.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").strip().lower()

    if not filename.endswith(".csv") and content_type not in CSV_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV files are allowed.",
        )

    return file


def get_task_executor(background_tasks: BackgroundTasks) -> PipelineTaskExecutor:
    """
    Run pipeline passes as FastAPI background tasks after the response.
    """

    return FastAPIBackgroundTaskExecutor(background_tasks)
