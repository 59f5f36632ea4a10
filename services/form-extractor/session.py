"""Document session state owned by the orchestrator.

One FormSession holds the active document, its preview handle, the current
extracted data, pipeline progress and the bounded extraction history. All
mutation goes through the methods here, the pipeline and the field store.
"""

import asyncio
import itertools
import logging
import secrets
from collections import deque
from enum import Enum

from config import settings
from errors import AlreadyProcessingError, NoDocumentError
from models import ExtractedData, HistoryEntry
from rasterizer import PageImage, PageRasterizer, UploadedFile

logger = logging.getLogger(__name__)


class PipelineStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class PreviewStore:
    """Transient handles for rendered page previews.

    A handle stays valid until released; callers release the previous handle
    before publishing a new one.
    """

    def __init__(self):
        self._images: dict[str, PageImage] = {}

    def create(self, image: PageImage) -> str:
        token = secrets.token_urlsafe(16)
        self._images[token] = image
        return token

    def get(self, token: str) -> PageImage | None:
        return self._images.get(token)

    def release(self, token: str | None) -> None:
        if token is not None:
            self._images.pop(token, None)

    def __len__(self) -> int:
        return len(self._images)


class FormSession:
    def __init__(
        self,
        history_limit: int | None = None,
        rasterizer_factory=PageRasterizer,
        previews: PreviewStore | None = None,
    ):
        self._rasterizer_factory = rasterizer_factory
        self.previews = previews or PreviewStore()
        self.history: deque[HistoryEntry] = deque(
            maxlen=history_limit if history_limit is not None else settings.HISTORY_LIMIT
        )
        self._manual_ids = itertools.count(1)
        self._history_ids = itertools.count(1)
        self._loading = False

        self.rasterizer: PageRasterizer | None = None
        self.filename = ""
        self.total_pages = 0
        self.current_page = 1
        self.preview_token: str | None = None
        self.extracted_data: ExtractedData | None = None
        self.status = PipelineStatus.IDLE
        self.extraction_in_progress = False
        self.current_extraction_page: int | None = None
        self.error: str | None = None

    @property
    def has_document(self) -> bool:
        return self.rasterizer is not None

    def require_document(self) -> PageRasterizer:
        if self.rasterizer is None:
            raise NoDocumentError("No form uploaded")
        return self.rasterizer

    @property
    def is_busy(self) -> bool:
        return self.extraction_in_progress or self._loading

    def ensure_idle(self) -> None:
        if self.extraction_in_progress:
            raise AlreadyProcessingError("Extraction in progress, please wait")
        if self._loading:
            raise AlreadyProcessingError("Document is still loading, please wait")

    def _show(self, image: PageImage) -> str:
        self.previews.release(self.preview_token)
        self.preview_token = self.previews.create(image)
        return self.preview_token

    async def upload(self, file: UploadedFile) -> int:
        """Load a new document, replacing the current session wholesale."""
        self.ensure_idle()
        rasterizer = self._rasterizer_factory()
        self._loading = True
        try:
            page_count = await asyncio.to_thread(rasterizer.load, file)
            first_page = await asyncio.to_thread(rasterizer.render_page, 1)
        except Exception:
            rasterizer.close()
            raise
        finally:
            self._loading = False

        self._teardown()
        self.rasterizer = rasterizer
        self.filename = file.filename
        self.total_pages = page_count
        self.current_page = 1
        self._show(first_page)
        logger.info("Session started for %s (%d page(s))", file.filename, page_count)
        return page_count

    async def go_to_page(self, page_number: int) -> str:
        """Render another page as the current preview. Returns the new handle."""
        self.ensure_idle()
        rasterizer = self.require_document()
        self._loading = True
        try:
            image = await asyncio.to_thread(rasterizer.render_page, page_number)
        finally:
            self._loading = False
        self.current_page = page_number
        return self._show(image)

    def clear(self) -> None:
        self.ensure_idle()
        self._teardown()
        self.error = None

    def _teardown(self) -> None:
        self.previews.release(self.preview_token)
        self.preview_token = None
        if self.rasterizer is not None:
            self.rasterizer.close()
        self.rasterizer = None
        self.filename = ""
        self.total_pages = 0
        self.current_page = 1
        self.extracted_data = None
        self.status = PipelineStatus.IDLE
        self.current_extraction_page = None

    # Pipeline entry points

    def begin_extraction(self) -> None:
        self.ensure_idle()
        self.require_document()
        self.extraction_in_progress = True
        self.status = PipelineStatus.RUNNING
        self.extracted_data = None
        self.error = None

    def set_progress(self, page: int) -> None:
        self.current_extraction_page = page

    def publish(self, data: ExtractedData) -> None:
        self.extracted_data = data

    def complete_extraction(self, data: ExtractedData, provider: str) -> HistoryEntry:
        self.extracted_data = data
        self.status = PipelineStatus.COMPLETED
        entry = HistoryEntry(
            id=next(self._history_ids),
            filename=self.filename,
            extracted_at=data.extracted_at,
            fields_count=len(data.fields),
            form_title=data.form_title,
            provider=provider,
        )
        # maxlen evicts from the right, which holds the oldest entry
        self.history.appendleft(entry)
        return entry

    def fail_extraction(self, message: str) -> None:
        self.status = PipelineStatus.FAILED
        self.error = message

    def end_extraction(self) -> None:
        self.extraction_in_progress = False
        self.current_extraction_page = None

    def next_manual_id(self, page: int) -> str:
        return f"manual_{next(self._manual_ids)}_{page}"

    def progress(self) -> dict:
        return {
            "status": self.status.value,
            "page": self.current_extraction_page,
            "totalPages": self.total_pages,
            "inProgress": self.extraction_in_progress,
        }
