"""Error taxonomy for content-store clients and the services built on them.

Only AttemptNotFoundError is ever caught to advance a strategy or switch the
addressing scheme. Everything else propagates unmodified to the caller.
"""


class ContentStoreError(Exception):
    """Base class for all content-store errors."""


class ShapeError(ContentStoreError):
    """Raised when a response envelope matches none of the recognized shapes."""

    def __init__(self, context: str, detail: str | None = None):
        self.context = context
        message = f"Unrecognized response shape in '{context}' response."
        if detail:
            message += f" {detail}"
        super().__init__(message)


class TransportError(ContentStoreError):
    """Raised for a non-success HTTP status that no caller handles."""

    def __init__(self, status_code: int, url: str, body: str | None = None):
        self.status_code = status_code
        self.url = url
        self.body = body
        super().__init__(f"Request to {url} failed with status {status_code}")


class AttemptNotFoundError(TransportError):
    """HTTP 404 for a single attempt. Callers with a defined fallback catch this."""


class AuthError(ContentStoreError):
    """Raised when the write-authorization token cannot be located."""


class NotFoundError(ContentStoreError):
    """Raised when every resolution strategy is exhausted for a hint."""

    def __init__(self, hint: str):
        self.hint = hint
        super().__init__(f"Could not find a page matching '{hint}'.")


class TargetNotFoundError(ContentStoreError):
    """Raised when the pre-probe misses and the path cannot be corrected."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Target resource '{path}' does not exist.")


class WriteTargetMissingError(ContentStoreError):
    """Raised when every addressing scheme returned not-found for a mutation."""

    def __init__(self, path: str, stage: str):
        self.path = path
        self.stage = stage
        super().__init__(f"Every addressing scheme returned 404 for {stage} of '{path}'.")


class VerificationError(ContentStoreError):
    """Raised when the written content is not observable after the write."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Written content is not observable at '{path}'.")
