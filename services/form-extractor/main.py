"""FastAPI form extractor service.

Upload a form image or PDF, extract its fields with the selected AI vision
provider, then review, edit, verify and export the result.
Documents are held in memory only and never written to disk.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from config import settings
from errors import (
    AlreadyProcessingError,
    ExtractionFailedError,
    ExtractionParseError,
    FieldNotFoundError,
    FormExtractorError,
    InvalidFileError,
    NoDocumentError,
    NoExtractedDataError,
    PageOutOfRangeError,
    ProviderNotConfiguredError,
    ProviderRequestError,
    RasterizationError,
    UnknownProviderError,
    ValidationError,
)
from export import EXPORT_FORMATS, export_filename
from extraction import ExtractionPipeline
from rasterizer import UploadedFile
from registry import ProviderRegistry
from session import FormSession
from store import FieldStore

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_registry: ProviderRegistry | None = None
_session: FormSession | None = None
_pipeline: ExtractionPipeline | None = None
_store: FieldStore | None = None

ERROR_STATUS: dict[type[FormExtractorError], int] = {
    InvalidFileError: 400,
    PageOutOfRangeError: 400,
    NoDocumentError: 400,
    UnknownProviderError: 400,
    FieldNotFoundError: 404,
    NoExtractedDataError: 404,
    AlreadyProcessingError: 409,
    ValidationError: 422,
    RasterizationError: 500,
    ExtractionParseError: 502,
    ProviderRequestError: 502,
    ProviderNotConfiguredError: 503,
}


def status_for(exc: Exception) -> int:
    if isinstance(exc, ExtractionFailedError):
        return status_for(exc.cause)
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the provider registry and an empty document session."""
    global _registry, _session, _pipeline, _store

    _registry = ProviderRegistry()
    _session = FormSession()
    _pipeline = ExtractionPipeline(_registry, _session)
    _store = FieldStore(_session)

    configured = [p.key for p in _registry.list_providers() if p.configured]
    if configured:
        logger.info("Configured providers: %s", ", ".join(configured))
    else:
        logger.warning("No AI provider configured: set OPENAI_API_KEY, GEMINI_API_KEY or CLAUDE_API_KEY")

    yield

    if not _session.is_busy:
        _session.clear()
    await _registry.aclose()


app = FastAPI(title="Form Extractor", version="1.0.0", lifespan=lifespan)


@app.exception_handler(FormExtractorError)
async def form_extractor_error(request: Request, exc: FormExtractorError):
    body = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, ExtractionFailedError):
        body["error"] = exc.kind
        body["page"] = exc.page
    return JSONResponse(status_code=status_for(exc), content=body)


class ActiveProviderRequest(BaseModel):
    key: str


class AddFieldRequest(BaseModel):
    label: str
    value: str = ""
    type: str = "text"
    page: int | None = None


class UpdateFieldRequest(BaseModel):
    label: str | None = None
    value: str | None = None


def _document_state() -> dict:
    return {
        "filename": _session.filename,
        "totalPages": _session.total_pages,
        "currentPage": _session.current_page,
        "preview": _session.preview_token,
    }


def _dump(model) -> dict:
    return model.model_dump(by_alias=True, mode="json")


@app.get("/health")
async def health():
    """Return service status and which providers have credentials."""
    return {
        "status": "healthy",
        "activeProvider": _registry.get_active_provider(),
        "providers": {p.key: p.configured for p in _registry.list_providers()},
    }


@app.get("/api/v1/providers")
async def list_providers():
    return {
        "active": _registry.get_active_provider(),
        "providers": [_dump(p) for p in _registry.list_providers()],
    }


@app.put("/api/v1/providers/active")
async def set_active_provider(req: ActiveProviderRequest):
    _registry.set_active_provider(req.key)
    return {"active": _registry.get_active_provider()}


@app.post("/api/v1/documents")
async def upload_document(file: UploadFile = File(...)):
    """Load a form image or PDF as the new document session."""
    data = await file.read()

    # log byte count only, never document content
    logger.info("Upload: name=%s type=%s size=%d bytes", file.filename, file.content_type, len(data))

    await _session.upload(UploadedFile(
        filename=file.filename or "form",
        data=data,
        media_type=file.content_type or "",
    ))
    return _document_state()


@app.delete("/api/v1/documents")
async def clear_document():
    _session.clear()
    return {"status": "cleared"}


@app.post("/api/v1/documents/pages/{page}")
async def go_to_page(page: int):
    await _session.go_to_page(page)
    return _document_state()


@app.get("/api/v1/previews/{token}")
async def get_preview(token: str):
    image = _session.previews.get(token)
    if image is None:
        return JSONResponse(status_code=404, content={"detail": "Preview not found or released"})
    return Response(content=image.data, media_type=image.media_type)


@app.post("/api/v1/extract")
async def extract():
    """Run extraction over every page of the current document."""
    data = await _pipeline.run()
    return _dump(data)


@app.get("/api/v1/extraction")
async def extraction_state():
    data = _session.extracted_data
    return {
        **_session.progress(),
        "error": _session.error,
        "data": _dump(data) if data is not None else None,
    }


@app.get("/api/v1/fields")
async def list_fields(page: int | None = None):
    return [_dump(f) for f in _store.filter_by_page(page)]


@app.post("/api/v1/fields", status_code=201)
async def add_field(req: AddFieldRequest):
    field = _store.add(req.label, value=req.value, type=req.type, page=req.page)
    return _dump(field)


@app.patch("/api/v1/fields/{field_id}")
async def update_field(field_id: str, req: UpdateFieldRequest):
    field = _store.update(field_id, label=req.label, value=req.value)
    return _dump(field)


@app.post("/api/v1/fields/{field_id}/verify")
async def toggle_verified(field_id: str):
    return _dump(_store.toggle_verified(field_id))


@app.delete("/api/v1/fields/{field_id}")
async def delete_field(field_id: str):
    return {"deleted": _store.delete(field_id)}


@app.get("/api/v1/export")
async def export_data(format: str = Query("json", pattern="^(json|csv)$")):
    data = _session.extracted_data
    if data is None:
        raise NoExtractedDataError("No data to export")

    render, media_type = EXPORT_FORMATS[format]
    filename = export_filename(_session.filename, format)
    return Response(
        content=render(data),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/v1/history")
async def history():
    return [_dump(entry) for entry in _session.history]


@app.get("/api/v1/stats")
async def stats():
    return _store.stats()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
