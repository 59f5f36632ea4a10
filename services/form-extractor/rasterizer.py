"""Turns an uploaded image or PDF into page-indexed raster images.

PDF pages are rendered with PyMuPDF at a fixed scale; images are passed
through at full resolution. Rendered pages are cached per page number.
"""

import logging
import mimetypes
from dataclasses import dataclass

import fitz  # PyMuPDF

from config import settings
from errors import InvalidFileError, PageOutOfRangeError, RasterizationError
from preprocessing import image_size, optimize_image

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
IMAGE_MEDIA_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})
ALLOWED_MEDIA_TYPES = IMAGE_MEDIA_TYPES | {PDF_MEDIA_TYPE}


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    data: bytes
    media_type: str = ""

    @property
    def resolved_media_type(self) -> str:
        if self.media_type and self.media_type != "application/octet-stream":
            return self.media_type.lower()
        guessed, _ = mimetypes.guess_type(self.filename)
        return (guessed or "").lower()


@dataclass(frozen=True)
class PageImage:
    page: int
    data: bytes
    media_type: str
    width: int
    height: int


def validate_file(file: UploadedFile, max_bytes: int | None = None) -> str:
    """Check type and size before anything is decoded. Returns the media type."""
    limit = max_bytes if max_bytes is not None else settings.MAX_UPLOAD_BYTES
    media_type = file.resolved_media_type

    if media_type not in ALLOWED_MEDIA_TYPES:
        raise InvalidFileError("Invalid file type. Please upload JPG, PNG, WebP images or PDF files.")
    if not file.data:
        raise InvalidFileError("Empty file uploaded")
    if len(file.data) > limit:
        raise InvalidFileError(f"File too large. Maximum size is {limit // (1024 * 1024)}MB.")
    return media_type


class PageRasterizer:
    """Rasterizes one document; create a new instance per upload."""

    def __init__(self, scale: float | None = None, max_bytes: int | None = None):
        self.scale = scale if scale is not None else settings.PDF_RENDER_SCALE
        self.max_bytes = max_bytes
        self.filename = ""
        self.media_type = ""
        self._data = b""
        self._pdf: fitz.Document | None = None
        self._page_count = 0
        self._cache: dict[int, PageImage] = {}

    @property
    def page_count(self) -> int:
        return self._page_count

    @property
    def is_pdf(self) -> bool:
        return self.media_type == PDF_MEDIA_TYPE

    def load(self, file: UploadedFile) -> int:
        """Validate and open a document. Returns its page count."""
        media_type = validate_file(file, self.max_bytes)
        self.close()

        if media_type == PDF_MEDIA_TYPE:
            try:
                pdf = fitz.open(stream=file.data, filetype="pdf")
            except (RuntimeError, ValueError) as e:
                raise InvalidFileError(f"Could not read PDF: {e}") from e
            if pdf.page_count == 0:
                pdf.close()
                raise InvalidFileError("PDF has no pages")
            self._pdf = pdf
            self._page_count = pdf.page_count
        else:
            if image_size(file.data) is None:
                raise InvalidFileError("Could not decode image")
            self._page_count = 1

        self.filename = file.filename
        self.media_type = media_type
        self._data = file.data
        logger.info("Loaded %s: type=%s size=%d bytes pages=%d",
                    file.filename, media_type, len(file.data), self._page_count)
        return self._page_count

    def render_page(self, page_number: int) -> PageImage:
        """Render a 1-indexed page. Repeated calls return the cached image."""
        if self._page_count == 0:
            raise RasterizationError("No document loaded")
        if page_number < 1 or page_number > self._page_count:
            raise PageOutOfRangeError(
                f"Invalid page number. Must be between 1 and {self._page_count}"
            )

        cached = self._cache.get(page_number)
        if cached is not None:
            return cached

        image = self._render_pdf_page(page_number) if self._pdf is not None else self._render_image()
        self._cache[page_number] = image
        return image

    def _render_pdf_page(self, page_number: int) -> PageImage:
        try:
            page = self._pdf.load_page(page_number - 1)
            pix = page.get_pixmap(matrix=fitz.Matrix(self.scale, self.scale), alpha=False)
            png_bytes = pix.tobytes(output="png")
        except (RuntimeError, ValueError) as e:
            raise RasterizationError(f"Failed to convert PDF page {page_number}: {e}") from e

        logger.debug("Rendered page %d: %dx%d (%d bytes)", page_number, pix.width, pix.height, len(png_bytes))
        return PageImage(
            page=page_number,
            data=png_bytes,
            media_type="image/png",
            width=pix.width,
            height=pix.height,
        )

    def _render_image(self) -> PageImage:
        data = optimize_image(self._data, self.media_type, settings.IMAGE_MAX_WIDTH)
        size = image_size(data)
        if size is None:
            raise RasterizationError("Could not decode image")
        media_type = "image/jpeg" if self.media_type == "image/jpg" else self.media_type
        return PageImage(page=1, data=data, media_type=media_type, width=size[0], height=size[1])

    def close(self) -> None:
        if self._pdf is not None:
            self._pdf.close()
        self._pdf = None
        self._page_count = 0
        self._cache.clear()
        self._data = b""
