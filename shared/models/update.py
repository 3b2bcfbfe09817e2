"""Pydantic models for page update requests and their outcome."""

from enum import Enum

from pydantic import BaseModel

from shared.clients.cms.models.Addressing import AddressingScheme


class UpdateState(str, Enum):
    """States of the conditional write. The last state reached is reported in the outcome; FAILED is never returned."""

    IDLE = "idle"
    TOKEN_ACQUIRED = "token_acquired"
    PRIMARY_ATTEMPTED = "primary_attempted"
    FALLBACK_ATTEMPTED = "fallback_attempted"
    WRITTEN = "written"
    PUBLISHED = "published"
    VERIFIED = "verified"
    FAILED = "failed"


class UpdateOutcome(BaseModel):
    """Returned to the caller when an update succeeds."""

    resolved_path: str
    addressing_scheme_used: AddressingScheme
    published: bool
    verified: bool | None = None
    state: UpdateState


class PageRequest(BaseModel):
    """A resolve-then-update request.

    target is an absolute page URL, a server-relative path or a page hint.
    content is the document written verbatim; it is never interpreted.
    """

    site_base_address: str | None = None
    target: str
    content: str
    publish: bool = True


class ResolveRequest(BaseModel):
    """A resolve-only request."""

    site_base_address: str | None = None
    hint: str


class ResolveResponse(BaseModel):
    hint: str
    path: str
