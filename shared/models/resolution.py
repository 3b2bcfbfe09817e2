"""Pydantic models for resolving a page hint to its exact path."""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from shared.helper.PathHelper import canonical_stem, leaf_name, stem_of


class HintKind(str, Enum):
    FILE = "file"
    TITLE = "title"


class MatchKind(str, Enum):
    """How a candidate matched. Declaration order mirrors strategy priority."""

    EXACT = "exact"
    CONTAINS_STEM = "contains_stem"
    CANONICAL_CONTAINS = "canonical_contains"
    TITLE_FIELD = "title_field"
    FULL_TEXT_HIT = "full_text_hit"


class SearchHint(BaseModel):
    """The caller's page reference, classified once and never reclassified.

    A hint ending in the page extension is file-like and used as the leaf name
    as-is. Anything else is title-like: spaces become hyphens and the
    extension is appended.
    """

    model_config = ConfigDict(frozen=True)

    raw: str
    kind: HintKind
    leaf_name: str
    stem: str
    alt_stem: str
    canonical_stem: str

    @classmethod
    def from_raw(cls, raw: str, extension: str) -> "SearchHint":
        """Classify a raw hint and derive its leaf name and stems.

        Args:
            raw (str): A bare name, a title-like phrase or a full leaf filename (a path keeps only its leaf).
            extension (str): The page file extension, e.g. ".aspx".

        Raises:
            ValueError: If the hint is blank.
        """
        text = (raw or "").strip()
        if not text:
            raise ValueError("Page hint must not be empty.")

        if text.lower().endswith(extension.lower()):
            kind = HintKind.FILE
            leaf = leaf_name(text) if "/" in text else text
            stem = stem_of(leaf, extension)
        else:
            kind = HintKind.TITLE
            stem = text.replace(" ", "-")
            leaf = stem + extension

        return cls(
            raw=text,
            kind=kind,
            leaf_name=leaf,
            stem=stem,
            alt_stem=stem.replace("-", " ").strip(),
            canonical_stem=canonical_stem(stem),
        )

    def is_file_like(self) -> bool:
        return self.kind is HintKind.FILE


class MatchCandidate(BaseModel):
    """A resolution hit. Ephemeral, produced and consumed inside one resolve call."""

    name: str
    path: str
    match_kind: MatchKind
    container: str | None = None
