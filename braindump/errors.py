# braindump/errors.py
# status_code is the HTTP status main.py answers with


class BrainDumpError(Exception):
    """Base error. Anything not more specific is an internal failure."""

    status_code = 500


class ConfigurationError(BrainDumpError):
    """Missing or unusable configuration, fatal at startup."""


class NotFoundError(BrainDumpError):
    """Entity absent or not owned by the caller."""

    status_code = 404


class SessionStateError(BrainDumpError):
    """An intake session cannot make the requested status transition."""

    status_code = 409


class ExtractionError(BrainDumpError):
    """The language model call failed or returned an unusable reply."""


class UploadError(BrainDumpError):
    """Uploaded file has an unsupported type."""

    status_code = 400


class UploadTooLargeError(UploadError):
    status_code = 413
