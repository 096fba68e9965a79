"""HTTP front end for the transcription pipeline.

FastAPI application that serves the upload page and accepts one audio file
per POST /transcribe request. The uploaded file is written to the upload
directory and handed to the pipeline, which owns and deletes it.

Usage:
    uvicorn audio_transcriber.api.app:create_app --factory --port 3000
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from audio_transcriber.backend.interface import MediaBackend
from audio_transcriber.backend.registry import get_backend
from audio_transcriber.config import Settings
from audio_transcriber.media.asset import MediaAsset
from audio_transcriber.pipeline import TranscriptionPipeline
from audio_transcriber.utils.errors import ConfigurationError, ErrorKind

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.QUOTA_EXCEEDED: 429,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.MODEL_UNAVAILABLE: 404,
    ErrorKind.TIMEOUT: 504,
}
DEFAULT_FAILURE_STATUS = 502


def _save_upload(audio: UploadFile, upload_dir: str) -> str:
    """Copy the uploaded body to a uniquely named file in upload_dir."""
    os.makedirs(upload_dir, exist_ok=True)
    suffix = Path(audio.filename or "").suffix
    fd, path = tempfile.mkstemp(prefix="upload-", suffix=suffix, dir=upload_dir)
    try:
        with os.fdopen(fd, "wb") as out:
            shutil.copyfileobj(audio.file, out)
    except OSError:
        os.remove(path)
        raise
    return path


def create_app(
    settings: Settings | None = None, backend: MediaBackend | None = None
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        settings: Service settings (read from the environment if omitted).
        backend: Backend client override, used by tests. When omitted a
            backend is created at startup if an API key is configured.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.backend = backend
        if app.state.backend is None and settings.api_key:
            app.state.backend = get_backend(settings.backend, **settings.backend_kwargs())
        yield
        if app.state.backend is not None and backend is None:
            await app.state.backend.aclose()

    app = FastAPI(
        title="Audio Transcriber",
        description="Transcribes uploaded audio through a generative AI backend.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", include_in_schema=False)
    async def index():
        return FileResponse(STATIC_DIR / "index.html")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/transcribe")
    async def transcribe(
        audio: UploadFile | None = File(None),
        model: str | None = Form(None),
    ):
        """Transcribe one uploaded audio file.

        ``model`` optionally overrides the candidate list with a single
        model id or a comma-separated list.
        """
        if not settings.api_key or app.state.backend is None:
            logger.error("GEMINI_API_KEY is not configured")
            return JSONResponse(
                status_code=500,
                content={"error": "Server misconfigured: missing API key."},
            )
        if audio is None or not audio.filename:
            return JSONResponse(
                status_code=400, content={"error": "No audio file uploaded."}
            )

        request_id = uuid.uuid4().hex[:12]
        try:
            config = settings.pipeline_config(models=model)
        except ConfigurationError as exc:
            return JSONResponse(status_code=400, content={"error": str(exc)})

        path = _save_upload(audio, settings.upload_dir)
        asset = MediaAsset(
            path=path,
            media_type=audio.content_type or "",
            filename=audio.filename,
        )
        logger.info(
            "Received %s for models %s",
            audio.filename,
            ",".join(config.candidates),
            extra={"request_id": request_id, "stage": "receive"},
        )

        pipeline = TranscriptionPipeline.from_settings(
            settings, config=config, backend=app.state.backend
        )
        result = await pipeline.run(asset, request_id=request_id)

        if result.error is None:
            return result.to_payload()
        status_code = STATUS_BY_KIND.get(result.error.kind, DEFAULT_FAILURE_STATUS)
        return JSONResponse(status_code=status_code, content=result.to_payload())

    return app
