"""In-memory CRUD over the session's extracted fields.

Mutations are rejected while an extraction run is publishing results.
"""

import logging

from errors import FieldNotFoundError, NoExtractedDataError, ValidationError
from models import FIELD_TYPES, ExtractedData, FormField
from session import FormSession

logger = logging.getLogger(__name__)


class FieldStore:
    def __init__(self, session: FormSession):
        self.session = session

    def _data(self) -> ExtractedData:
        data = self.session.extracted_data
        if data is None:
            raise NoExtractedDataError("No extracted data. Run an extraction first.")
        return data

    def _find(self, field_id: str) -> FormField:
        data = self.session.extracted_data
        if data is not None:
            for field in data.fields:
                if field.id == field_id:
                    return field
        raise FieldNotFoundError(field_id)

    def get(self, field_id: str) -> FormField:
        return self._find(field_id)

    def update(self, field_id: str, label: str | None = None, value: str | None = None) -> FormField:
        """Edit label and/or value; an edited field counts as verified."""
        self.session.ensure_idle()
        field = self._find(field_id)
        if label is not None and not label.strip():
            raise ValidationError("Field label cannot be empty")

        if label is not None:
            field.label = label.strip()
        if value is not None:
            field.value = value
        field.verified = True
        return field

    def toggle_verified(self, field_id: str) -> FormField:
        self.session.ensure_idle()
        field = self._find(field_id)
        field.verified = not field.verified
        return field

    def delete(self, field_id: str) -> bool:
        """Remove a field. Returns False if it was already gone."""
        self.session.ensure_idle()
        data = self.session.extracted_data
        if data is None:
            return False
        remaining = [f for f in data.fields if f.id != field_id]
        if len(remaining) == len(data.fields):
            return False
        data.fields = remaining
        return True

    def add(
        self,
        label: str,
        value: str = "",
        type: str = "text",
        page: int | None = None,
    ) -> FormField:
        """Add a manually entered field on the given (default: current) page."""
        self.session.ensure_idle()
        data = self._data()
        if not label or not label.strip():
            raise ValidationError("Field label cannot be empty")
        if type not in FIELD_TYPES:
            raise ValidationError(f"Unknown field type: {type}")

        page = page if page is not None else self.session.current_page
        total = self.session.total_pages
        if page < 1 or (total and page > total):
            raise ValidationError(f"Invalid page number. Must be between 1 and {total}")

        field = FormField(
            id=self.session.next_manual_id(page),
            label=label.strip(),
            value=value or "",
            type=type,
            confidence=1.0,
            verified=True,
            page=page,
        )
        data.fields.append(field)
        logger.debug("Added field %s on page %d", field.id, page)
        return field

    def filter_by_page(self, page: int | None = None) -> list[FormField]:
        """Fields on one page, or all fields when page is None."""
        data = self.session.extracted_data
        if data is None:
            return []
        if page is None:
            return list(data.fields)
        return [f for f in data.fields if f.page == page]

    def stats(self) -> dict:
        data = self.session.extracted_data
        fields = data.fields if data is not None else []
        return {
            "currentFieldsCount": len(fields),
            "verifiedFieldsCount": sum(1 for f in fields if f.verified),
            "totalProcessed": len(self.session.history),
            "hasCurrentForm": data is not None,
        }
