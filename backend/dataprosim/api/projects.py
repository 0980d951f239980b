"""Project, dataset upload and chart routes."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from pydantic import BaseModel

from dataprosim.api.deps import get_app_settings, get_storage
from dataprosim.core.config import Settings
from dataprosim.core.exceptions import (
    ErrorCode,
    NotFoundError,
    PayloadTooLargeError,
    ValidationError,
)
from dataprosim.schemas.storage import (
    ChartDatasetSummary,
    ChartRequest,
    ChartResponse,
    Dataset,
    DatasetCreate,
    Project,
    ProjectCreate,
    ProjectUpdate,
    UploadResponse,
)
from dataprosim.services.datasets import (
    generate_chart_data,
    generate_insights,
    parse_csv_upload,
)
from dataprosim.services.storage import InMemoryStorage

logger = logging.getLogger(__name__)

router = APIRouter()


class ExecuteCodeRequest(BaseModel):
    code: str = ""
    language: str = "python"


class ExportCodeRequest(BaseModel):
    code: str = ""
    format: str = "py"


async def _require_project(storage: InMemoryStorage, project_id: int) -> Project:
    project = await storage.get_project(project_id)
    if project is None:
        raise NotFoundError(
            "Project not found",
            code=ErrorCode.PRJ_NOT_FOUND,
            resource_type="project",
            resource_id=project_id,
        )
    return project


# ========== Projects ==========

@router.get("", response_model=List[Project])
async def list_projects(
    storage: InMemoryStorage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    return await storage.get_projects_by_user(settings.demo_user_id)


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    storage: InMemoryStorage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    return await storage.create_project(data, user_id=settings.demo_user_id)


@router.get("/{project_id}", response_model=Project)
async def get_project(
    project_id: int,
    storage: InMemoryStorage = Depends(get_storage),
):
    return await _require_project(storage, project_id)


@router.patch("/{project_id}", response_model=Project)
async def update_project(
    project_id: int,
    data: ProjectUpdate,
    storage: InMemoryStorage = Depends(get_storage),
):
    updated = await storage.update_project(project_id, data.model_dump(exclude_unset=True))
    if updated is None:
        await _require_project(storage, project_id)
    return updated


# ========== Datasets ==========

@router.post("/{project_id}/upload", response_model=UploadResponse)
async def upload_dataset(
    project_id: int,
    file: Optional[UploadFile] = File(None),
    storage: InMemoryStorage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    """
    Attach a CSV dataset to a project.

    Only the header row and line count are read; the project's dataset_info
    is replaced with the new file's summary.
    """
    await _require_project(storage, project_id)

    if file is None:
        raise ValidationError("No file uploaded", code=ErrorCode.DST_NO_FILE, field="file")

    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise PayloadTooLargeError(size=len(content), limit=settings.max_upload_bytes)

    summary = parse_csv_upload(content)
    filename = file.filename or "dataset.csv"

    dataset = await storage.create_dataset(DatasetCreate(
        project_id=project_id,
        filename=filename,
        size=len(content),
        columns=summary.headers,
        rows=summary.rows,
    ))

    await storage.update_project(project_id, {
        "dataset_info": {
            "filename": filename,
            "rows": summary.rows,
            "columns": len(summary.headers),
            "features": summary.headers,
        },
    })

    logger.info(
        f"[PROJECTS] Uploaded {filename} ({summary.rows} rows, {len(summary.headers)} columns)",
        extra={"project_id": project_id},
    )
    return UploadResponse(dataset=dataset, preview=summary.preview)


@router.get("/{project_id}/datasets", response_model=List[Dataset])
async def list_datasets(
    project_id: int,
    storage: InMemoryStorage = Depends(get_storage),
):
    await _require_project(storage, project_id)
    return await storage.get_datasets_by_project(project_id)


@router.post("/{project_id}/chart", response_model=ChartResponse)
async def generate_chart(
    project_id: int,
    request: ChartRequest,
    storage: InMemoryStorage = Depends(get_storage),
):
    """Chart points and headline insights for the project's first dataset."""
    await _require_project(storage, project_id)

    datasets = await storage.get_datasets_by_project(project_id)
    if not datasets:
        raise ValidationError(
            "No dataset found for this project",
            code=ErrorCode.PRJ_NO_DATASET,
        )
    dataset = datasets[0]

    return ChartResponse(
        data=generate_chart_data(dataset, request.x_axis, request.y_axis),
        insights=generate_insights(dataset, request.chart_type, request.x_axis, request.y_axis),
        dataset=ChartDatasetSummary(
            filename=dataset.filename,
            rows=dataset.rows,
            columns=dataset.columns,
        ),
    )


# ========== Code editor ==========

@router.post("/{project_id}/execute-code")
async def execute_code(project_id: int, request: ExecuteCodeRequest):
    # Sandbox execution is not wired up yet; the editor only needs a status
    return {
        "output": "Code executed successfully",
        "executionTime": "2.34s",
        "status": "success",
    }


@router.post("/{project_id}/export-code")
async def export_code(project_id: int, request: ExportCodeRequest):
    return {
        "message": f"Code exported as {request.format}",
        "downloadUrl": f"/downloads/code.{request.format}",
    }
