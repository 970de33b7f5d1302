"""LibrasSign — API Routes.

REST + WebSocket endpoints over the core sign pipeline: recognition
stream, sample collection, dataset import/export, training, model
upload and the recognized-text buffer.
"""

from __future__ import annotations

import asyncio
import base64
import tempfile
from pathlib import Path
from typing import Any

import cv2
import numpy as np
from fastapi import (
    APIRouter,
    Depends,
    File,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from loguru import logger

from backend.apps.api.dependencies import get_pipeline, get_settings, get_text_buffer
from backend.apps.api.schemas import (
    CollectRequest,
    CollectResponse,
    DatasetImportResponse,
    DatasetPayload,
    HealthResponse,
    ModelStatusResponse,
    TextResponse,
    TrainResponse,
)
from backend.config import Settings
from core.inference.pipeline import SignPipeline
from core.text_buffer import TextBuffer

router = APIRouter()


def _model_status(pipeline: SignPipeline) -> ModelStatusResponse:
    manager = pipeline.classifier
    return ModelStatusResponse(
        loaded=manager.is_loaded,
        status=manager.status,
        label_names=manager.label_names,
        training=manager.is_training,
    )


# ── Health ───────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(
    settings: Settings = Depends(get_settings),
    pipeline: SignPipeline = Depends(get_pipeline),
) -> HealthResponse:
    """Liveness / readiness probe."""
    from backend.apps.api.main import get_uptime

    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        pipeline_running=pipeline.is_running,
        model_loaded=pipeline.classifier.is_loaded,
        uptime_seconds=round(get_uptime(), 2),
    )


# ── Model ────────────────────────────────────────────────────


@router.get("/model", response_model=ModelStatusResponse, tags=["Model"])
async def model_status(pipeline: SignPipeline = Depends(get_pipeline)) -> ModelStatusResponse:
    return _model_status(pipeline)


@router.post("/model", response_model=ModelStatusResponse, tags=["Model"])
async def upload_model(
    model_file: UploadFile = File(..., description="Classifier checkpoint (.pt)"),
    labels_file: UploadFile | None = File(None, description="Label Set (JSON list)"),
    pipeline: SignPipeline = Depends(get_pipeline),
) -> ModelStatusResponse:
    """Replace the live classifier with an uploaded one."""
    with tempfile.TemporaryDirectory() as tmpdir:
        model_path = Path(tmpdir) / "upload.pt"
        model_path.write_bytes(await model_file.read())
        labels_path = None
        if labels_file is not None:
            labels_path = Path(tmpdir) / "labels.json"
            labels_path.write_bytes(await labels_file.read())
        pipeline.classifier.load_external(model_path, labels_path)
    return _model_status(pipeline)


@router.post(
    "/train",
    response_model=TrainResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Model"],
)
async def train(pipeline: SignPipeline = Depends(get_pipeline)) -> TrainResponse:
    """Start training on the collected samples (runs in the background)."""
    future = pipeline.train_async()
    future.add_done_callback(_log_training_outcome)
    return TrainResponse(
        num_samples=len(pipeline.collector),
        status=pipeline.classifier.status,
    )


def _log_training_outcome(future: Any) -> None:
    error = future.exception()
    if error is not None:
        logger.error("Background training failed: {}", error)


# ── Collection / dataset ─────────────────────────────────────


@router.post("/collect", response_model=CollectResponse, tags=["Dataset"])
async def toggle_collect(
    body: CollectRequest,
    pipeline: SignPipeline = Depends(get_pipeline),
) -> CollectResponse:
    """Start or pause sample collection for a letter."""
    collecting = pipeline.toggle_collecting(body.label)
    collector = pipeline.collector
    return CollectResponse(
        collecting=collecting,
        label=collector.current_label,
        counts=collector.counts,
    )


@router.get("/dataset", tags=["Dataset"])
async def export_dataset(pipeline: SignPipeline = Depends(get_pipeline)) -> dict[str, Any]:
    """Download the collected samples in the dataset JSON format."""
    return pipeline.collector.export()


@router.post("/dataset", response_model=DatasetImportResponse, tags=["Dataset"])
async def import_dataset(
    body: DatasetPayload,
    pipeline: SignPipeline = Depends(get_pipeline),
) -> DatasetImportResponse:
    """Replace the collected samples with an uploaded dataset."""
    count = pipeline.collector.import_(body.model_dump())
    return DatasetImportResponse(num_samples=count, counts=pipeline.collector.counts)


# ── Recognized text ──────────────────────────────────────────


@router.get("/text", response_model=TextResponse, tags=["Text"])
async def get_text(buffer: TextBuffer = Depends(get_text_buffer)) -> TextResponse:
    return TextResponse(text=buffer.text)


@router.delete("/text", response_model=TextResponse, tags=["Text"])
async def clear_text(buffer: TextBuffer = Depends(get_text_buffer)) -> TextResponse:
    buffer.clear()
    return TextResponse(text=buffer.text)


@router.post("/text/backspace", response_model=TextResponse, tags=["Text"])
async def backspace_text(buffer: TextBuffer = Depends(get_text_buffer)) -> TextResponse:
    return TextResponse(text=buffer.backspace())


# ── WebSocket Real-Time Stream ───────────────────────────────


@router.websocket("/ws/stream")
async def websocket_stream(
    ws: WebSocket,
    pipeline: SignPipeline = Depends(get_pipeline),
    buffer: TextBuffer = Depends(get_text_buffer),
) -> None:
    """Real-time sign recognition over WebSocket.

    Protocol:
      Client → Server: base64-encoded JPEG frame
      Server → Client: JSON frame result (phase, countdown, emitted letter, text)
    """
    await ws.accept()
    logger.info("WebSocket client connected")
    frame_count = 0

    try:
        while True:
            data = await ws.receive_text()
            frame_count += 1

            try:
                img_bytes = base64.b64decode(data)
                nparr = np.frombuffer(img_bytes, np.uint8)
                bgr_image = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
            except (ValueError, cv2.error):
                await ws.send_json({"error": "Invalid image data"})
                continue

            if bgr_image is None:
                await ws.send_json({"error": "Failed to decode frame"})
                continue

            result = await asyncio.to_thread(pipeline.process_frame, bgr_image)

            await ws.send_json(
                {
                    "frame_id": frame_count,
                    "hand_present": result.hand_present,
                    "phase": result.phase.name.lower(),
                    "countdown": result.countdown,
                    "message": pipeline.stability.message,
                    "status": result.status,
                    "emitted": result.emitted,
                    "collected": result.collected,
                    "text": buffer.text,
                    "processing_ms": round(result.processing_time_ms, 2),
                }
            )

    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected | frames={}", frame_count)
