"""Error kinds raised by the extraction engine.

Every error carries a human-readable message; the HTTP layer maps each kind
to a status code and passes the message through unchanged.
"""


class FormExtractorError(Exception):
    """Base class for all form extractor errors."""


class InvalidFileError(FormExtractorError):
    """Uploaded file has an unsupported type, is too large or cannot be decoded."""


class PageOutOfRangeError(FormExtractorError):
    """Requested page is outside 1..page_count."""


class NoDocumentError(FormExtractorError):
    """An operation needs an uploaded document but none is loaded."""


class RasterizationError(FormExtractorError):
    """A document page could not be rendered to an image."""


class UnknownProviderError(FormExtractorError):
    """Provider key is not one of the registered backends."""


class ProviderNotConfiguredError(FormExtractorError):
    """Active provider has no API key."""

    def __init__(self, provider_name: str, env_var: str):
        self.provider_name = provider_name
        self.env_var = env_var
        super().__init__(
            f"{provider_name} is not configured. Please set {env_var} in the environment. "
            "Alternatively, try another provider."
        )


class ProviderRequestError(FormExtractorError):
    """Provider call failed at the transport or HTTP level."""

    def __init__(self, message: str, provider: str = "", status_code: int | None = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class ExtractionParseError(FormExtractorError):
    """Provider output could not be interpreted as the expected JSON payload."""


class ResponseTruncatedError(ExtractionParseError):
    """Provider stopped generating before the JSON payload was complete."""

    def __init__(self, provider: str, finish_reason: str):
        self.provider = provider
        self.finish_reason = finish_reason
        super().__init__(f"{provider} response was truncated (finish reason: {finish_reason})")


class AlreadyProcessingError(FormExtractorError):
    """An extraction run is already in flight for this session."""


class ExtractionFailedError(FormExtractorError):
    """An extraction run stopped on a page; earlier pages stay published."""

    def __init__(self, page: int, cause: Exception):
        self.page = page
        self.cause = cause
        super().__init__(f"Extraction failed on page {page}: {cause}")

    @property
    def kind(self) -> str:
        return type(self.cause).__name__


class FieldNotFoundError(FormExtractorError):
    """No field with the given id in the current collection."""

    def __init__(self, field_id: str):
        self.field_id = field_id
        super().__init__(f"Field not found: {field_id}")


class NoExtractedDataError(FormExtractorError):
    """Field operations need extracted data but no extraction has run."""


class ValidationError(FormExtractorError):
    """Field input is invalid (empty label, unknown type, bad page)."""
