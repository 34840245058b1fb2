"""FastAPI routes for datasets, records and per-dataset progress."""

from typing import List, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from pydantic import BaseModel, Field

from controllers.dataset_controller import (
    annotator_breakdown,
    create_dataset,
    dataset_coverage,
    get_record,
    list_datasets,
    resume_position,
    upload_dataset,
    user_progress,
)
from models.dataset_models import Channel, RecordInput
from utils.http_errors import call_controller

router = APIRouter(prefix="/datasets", tags=["datasets"])


class ChannelPayload(BaseModel):
    name: str
    samples: List[float] = Field(default_factory=list)


class RecordPayload(BaseModel):
    patient_id: str
    timestamp: Optional[str] = None
    heart_rate: Optional[float] = None
    pr_interval: Optional[float] = None
    qrs_duration: Optional[float] = None
    qt_interval: Optional[float] = None
    auto_analysis: str = ""
    channels: List[ChannelPayload] = Field(default_factory=list)

    def to_input(self) -> RecordInput:
        return RecordInput(
            patient_id=self.patient_id,
            timestamp=self.timestamp,
            heart_rate=self.heart_rate,
            pr_interval=self.pr_interval,
            qrs_duration=self.qrs_duration,
            qt_interval=self.qt_interval,
            auto_analysis=self.auto_analysis,
            channels=[Channel(name=c.name, samples=list(c.samples)) for c in self.channels],
        )


class DatasetPayload(BaseModel):
    name: str
    description: str = ""
    records: List[RecordPayload] = Field(default_factory=list)


@router.get("")
async def list_datasets_route(request: Request):
    return await call_controller(list_datasets(request))


@router.post("", status_code=201)
async def create_dataset_route(request: Request, payload: DatasetPayload):
    items = [r.to_input() for r in payload.records]
    return await call_controller(create_dataset(request, payload.name, payload.description, items))


@router.post("/upload", status_code=201, summary="Ingest a CSV file of records")
async def upload_dataset_route(
    request: Request,
    file: UploadFile = File(...),
    name: str = Form(...),
    description: str = Form(""),
):
    return await call_controller(upload_dataset(request, name, description, file))


@router.get("/{dataset_id}/records/{record_id}")
async def get_record_route(request: Request, dataset_id: str, record_id: str):
    return await call_controller(get_record(request, dataset_id, record_id))


@router.get("/{dataset_id}/progress")
async def progress_route(request: Request, dataset_id: str):
    return await call_controller(user_progress(request, dataset_id))


@router.get("/{dataset_id}/coverage")
async def coverage_route(request: Request, dataset_id: str):
    return await call_controller(dataset_coverage(request, dataset_id))


@router.get("/{dataset_id}/annotators")
async def annotators_route(request: Request, dataset_id: str):
    return await call_controller(annotator_breakdown(request, dataset_id))


@router.get("/{dataset_id}/resume")
async def resume_route(request: Request, dataset_id: str):
    return await call_controller(resume_position(request, dataset_id))
