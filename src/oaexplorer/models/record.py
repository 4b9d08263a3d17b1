"""Canonical paper record shared by every connector and search backend."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class Source(str, Enum):
    """Repositories a record can originate from."""

    ARXIV = "arxiv"
    CORE = "core"
    EUROPEPMC = "europepmc"
    NCBI = "ncbi"
    OPENAIRE = "openaire"
    BIORXIV = "biorxiv"
    MEDRXIV = "medrxiv"
    DOAJ = "doaj"
    OPENCITATIONS = "opencitations"
    DATACITE = "datacite"


class OAStatus(str, Enum):
    """Open-access status of a record."""

    PREPRINT = "preprint"
    ACCEPTED = "accepted"
    PUBLISHED = "published"
    OTHER = "other"


_DOI_PREFIX_RE = re.compile(r"^(?:https?://)?(?:dx\.)?doi\.org/|^doi:\s*", re.IGNORECASE)


def normalize_doi(value: str | None) -> str | None:
    """Strip URL/``doi:`` prefixes and lower-case a DOI.

    Returns ``None`` for empty input or strings that are not DOIs.
    """
    if not value:
        return None
    doi = _DOI_PREFIX_RE.sub("", value.strip()).strip().strip('"')
    if not doi.startswith("10."):
        return None
    return doi.lower()


def make_record_id(source: Source | str, source_id: str) -> str:
    """Build the ``<source>:<sourceId>`` identifier."""
    return f"{Source(source).value}:{source_id}"


def split_record_id(record_id: str) -> tuple[Source, str]:
    """Split a record id into its source and source-native identifier.

    Raises:
        ValueError: If the id has no ``:`` separator, an empty source id,
            or an unknown source prefix.
    """
    prefix, sep, source_id = record_id.partition(":")
    if not sep or not source_id:
        raise ValueError(f"Invalid record id: {record_id!r}")
    return Source(prefix), source_id


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class OARecord(BaseModel):
    """One paper, normalized from a vendor response.

    Attribute names are snake_case; the JSON form uses camelCase aliases
    (``sourceId``, ``oaStatus``, ``bestPdfUrl`` ...). ``id`` is derived from
    ``source`` and ``source_id`` when omitted.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=False,
    )

    id: str = Field(description="Record id, '<source>:<sourceId>'")
    doi: str | None = Field(default=None, description="Normalized DOI without URL prefix")
    title: str = Field(min_length=1, description="Paper title")
    authors: list[str] = Field(default_factory=list, description="Author display names in citation order")
    year: int | None = Field(default=None, description="Publication year")
    venue: str | None = Field(default=None, description="Journal or conference name")
    abstract: str | None = Field(default=None, description="Abstract text")
    source: Source = Field(description="Originating repository")
    source_id: str = Field(min_length=1, description="Source-native identifier")
    oa_status: OAStatus | None = Field(default=None, description="Open-access status")
    best_pdf_url: str | None = Field(default=None, description="Best-effort full-text PDF URL")
    landing_page: str | None = Field(default=None, description="Canonical human-readable page")
    topics: list[str] = Field(default_factory=list, description="Keywords and subjects")
    language: str | None = Field(default="en", description="ISO language code")
    publisher: str | None = Field(default=None, description="Publisher name")
    citation_count: int | None = Field(default=None, description="Citation count (never populated by connectors)")
    created_at: str = Field(description="ISO-8601 creation timestamp")
    updated_at: str | None = Field(default=None, description="ISO-8601 update timestamp")

    @model_validator(mode="before")
    @classmethod
    def _derive_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("id"):
            source = data.get("source")
            source_id = data.get("source_id", data.get("sourceId"))
            if source and source_id:
                data = {**data, "id": make_record_id(source, str(source_id))}
        return data

    @field_validator("authors", "topics", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        if v is None:
            return []
        return v

    @field_validator("topics")
    @classmethod
    def _dedupe_topics(cls, v: list[str]) -> list[str]:
        seen: dict[str, None] = {}
        for topic in v:
            topic = topic.strip()
            if topic:
                seen.setdefault(topic, None)
        return list(seen)

    @field_validator("doi", mode="before")
    @classmethod
    def _normalize_doi(cls, v: Any) -> Any:
        if isinstance(v, str):
            return normalize_doi(v)
        return v

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _iso_timestamp(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            if v.tzinfo is None:
                v = v.replace(tzinfo=UTC)
            return v.isoformat()
        return v

    @model_validator(mode="after")
    def _check_id(self) -> OARecord:
        expected = make_record_id(self.source, self.source_id)
        if self.id != expected:
            raise ValueError(f"Record id {self.id!r} does not match source/sourceId ({expected!r})")
        return self

    def to_document(self) -> dict[str, Any]:
        """JSON document in the camelCase wire form, without null fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
