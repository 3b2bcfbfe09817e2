"""Uniform access to list- and record-valued JSON responses.

The content API answers in one of two envelope shapes depending on the
negotiated metadata level:

    modern   {"value": [...]}                 records: bare object
    verbose  {"d": {"results": [...]}}        records: {"d": {...}}

Nested collections (search "Rows", "Cells") are either a bare array or
{"results": [...]}. The set of shapes is closed: anything else raises
ShapeError tagged with the call-site context.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError

from shared.clients.cms.exceptions import ShapeError


class EnvelopeShape(str, Enum):
    MODERN = "modern"
    VERBOSE = "verbose"


class _ModernEnvelope(BaseModel):
    value: list[dict[str, Any]]


class _ResultsCollection(BaseModel):
    results: list[dict[str, Any]]


class _VerboseEnvelope(BaseModel):
    d: _ResultsCollection


class _VerboseRecord(BaseModel):
    d: dict[str, Any]


def detect_shape(document: Any) -> EnvelopeShape | None:
    """Return the list envelope shape of a decoded response, or None if it is not a recognized one.

    The modern shape wins when both are structurally present.
    """
    if not isinstance(document, dict):
        return None
    try:
        _ModernEnvelope.model_validate(document)
        return EnvelopeShape.MODERN
    except ValidationError:
        pass
    try:
        _VerboseEnvelope.model_validate(document)
        return EnvelopeShape.VERBOSE
    except ValidationError:
        return None


def extract_array(document: Any, context: str) -> list[dict[str, Any]]:
    """Extract the list of records from a list-valued response.

    Args:
        document (Any): The decoded JSON response.
        context (str): Call-site tag used in the error (e.g. "lists", "files").

    Returns:
        list[dict[str, Any]]: The records in server order.

    Raises:
        ShapeError: If neither envelope shape is present.
    """
    shape = detect_shape(document)
    if shape is EnvelopeShape.MODERN:
        return _ModernEnvelope.model_validate(document).value
    if shape is EnvelopeShape.VERBOSE:
        return _VerboseEnvelope.model_validate(document).d.results
    raise ShapeError(context, detail=f"Expected 'value' or 'd.results', got {_describe(document)}.")


def extract_nested_array(element: Any, context: str) -> list[dict[str, Any]]:
    """Extract a nested collection that is either a bare array or {"results": [...]}.

    Raises:
        ShapeError: If the element is neither.
    """
    try:
        if isinstance(element, list):
            return _ResultsCollection.model_validate({"results": element}).results
        if isinstance(element, dict):
            return _ResultsCollection.model_validate(element).results
    except ValidationError:
        pass
    raise ShapeError(context, detail=f"Expected an array or 'results', got {_describe(element)}.")


def extract_record(document: Any, context: str) -> dict[str, Any]:
    """Extract a single record that is either a bare object or wrapped as {"d": {...}}.

    Raises:
        ShapeError: If the document is not an object.
    """
    if not isinstance(document, dict):
        raise ShapeError(context, detail=f"Expected an object, got {_describe(document)}.")
    if set(document) == {"d"}:
        try:
            return _VerboseRecord.model_validate(document).d
        except ValidationError:
            raise ShapeError(context, detail="'d' is not an object.")
    return document


def _describe(document: Any) -> str:
    if isinstance(document, dict):
        keys = ", ".join(sorted(str(k) for k in document)[:5])
        return f"object with keys [{keys}]"
    return type(document).__name__
