"""Extraction pipeline: rasterize each page, send it to the active provider, merge.

Pages run strictly one after another. For multi-page documents the merged
fields are published to the session after every page, so partial results are
visible while later pages are still being processed. A failure on any page
stops the run; fields from earlier pages stay published.
"""

import asyncio
import logging
import time

from errors import ExtractionFailedError, FormExtractorError
from models import FIELD_TYPES, ExtractedData, FormField, RawExtraction, utcnow
from registry import ProviderRegistry
from session import FormSession

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8


def map_fields(raw: RawExtraction, page: int) -> list[FormField]:
    """Normalize provider fields for one page.

    Ids are derived from the position on the page and the page number, so the
    same input always yields the same ids.
    """
    fields = []
    for index, item in enumerate(raw.fields):
        label = (item.label or "").strip() or f"Field {index + 1}"
        field_type = (item.type or "").strip().lower()
        confidence = DEFAULT_CONFIDENCE if item.confidence is None else min(max(item.confidence, 0.0), 1.0)

        fields.append(FormField(
            id=f"field_{index}_{page}",
            label=label,
            value=item.value or "",
            type=field_type if field_type in FIELD_TYPES else "text",
            confidence=confidence,
            verified=False,
            page=page,
            bounding_box=item.bounding_box,
        ))
    return fields


class ExtractionPipeline:
    """Drives one extraction run at a time against a session."""

    def __init__(self, registry: ProviderRegistry, session: FormSession):
        self.registry = registry
        self.session = session

    async def run(self) -> ExtractedData:
        """Extract every page of the session's document.

        Raises NoDocumentError, AlreadyProcessingError or
        ProviderNotConfiguredError before anything starts, and
        ExtractionFailedError (with the failing page) once running.
        """
        session = self.session
        rasterizer = session.require_document()
        session.ensure_idle()
        try:
            self.registry.ensure_configured()
        except FormExtractorError as e:
            session.error = str(e)
            raise

        session.begin_extraction()
        provider_key = self.registry.get_active_provider()
        total = session.total_pages
        start = time.monotonic()
        logger.info("Extraction started: %s (%d page(s)) with %s", session.filename, total, provider_key)

        fields: list[FormField] = []
        form_title: str | None = None
        try:
            for page in range(1, total + 1):
                session.set_progress(page)
                logger.info("Processing page %d of %d", page, total)
                try:
                    image = await asyncio.to_thread(rasterizer.render_page, page)
                    raw = await self.registry.extract(image)
                except FormExtractorError as e:
                    raise ExtractionFailedError(page, e) from e
                except Exception as e:
                    logger.exception("Unexpected error on page %d", page)
                    raise ExtractionFailedError(page, e) from e

                page_fields = map_fields(raw, page)
                if page == 1:
                    form_title = raw.form_title
                fields.extend(page_fields)
                logger.info("Page %d: %d field(s)", page, len(page_fields))

                if total > 1:
                    session.publish(ExtractedData(
                        form_title=form_title,
                        fields=list(fields),
                        extracted_at=utcnow(),
                    ))

            data = ExtractedData(form_title=form_title, fields=fields, extracted_at=utcnow())
            info = self.registry.get_provider_info(provider_key)
            session.complete_extraction(data, info.name if info else provider_key)
        except ExtractionFailedError as e:
            logger.error("Extraction failed on page %d (%s): %s", e.page, e.kind, e.cause)
            session.fail_extraction(str(e))
            raise
        except Exception as e:
            logger.exception("Extraction aborted")
            session.fail_extraction(f"Extraction failed: {e}")
            raise
        finally:
            session.end_extraction()

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info("Extraction completed: %d field(s) in %dms", len(data.fields), elapsed_ms)
        return data
