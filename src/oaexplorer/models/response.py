"""API response and request models."""

from __future__ import annotations

from enum import Enum

from pydantic import Field, model_validator

from oaexplorer.models.query import CamelModel, SearchParams
from oaexplorer.models.record import OARecord, Source


class SearchResponse(CamelModel):
    """One page of index hits with facet counts."""

    hits: list[OARecord] = Field(default_factory=list, description="Records on this page")
    facets: dict[str, dict[str, int]] = Field(
        default_factory=dict,
        description="Facet field -> value -> count",
    )
    page: int = Field(description="1-based page number")
    total: int = Field(description="Total matching records, independent of page")
    page_size: int = Field(description="Requested page size")


class PdfStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    ERROR = "error"


class PdfInfo(CamelModel):
    """Resolved full-text link for a paper."""

    url: str | None = Field(default=None, description="PDF URL when one was found")
    status: PdfStatus = Field(description="Resolution outcome")


class PaperResponse(CamelModel):
    """Detail view of a single paper."""

    record: OARecord
    pdf: PdfInfo


class SourceOutcome(CamelModel):
    """Result of querying one connector during federation."""

    source: Source
    count: int = Field(default=0, description="Records returned")
    latency_ms: int = Field(default=0, description="Wall time in ms")
    error: str | None = Field(default=None, description="Failure reason, if any")


class IngestRequest(CamelModel):
    """Federated fetch from sources followed by indexing."""

    q: str | None = Field(default=None, description="Keywords or title")
    doi: str | None = Field(default=None, description="DOI to look up")
    year_from: int | None = Field(default=None, description="Lowest publication year")
    year_to: int | None = Field(default=None, description="Highest publication year")
    sources: list[Source] | None = Field(default=None, description="Sources to query (None = all enabled)")

    @model_validator(mode="after")
    def _require_query(self) -> IngestRequest:
        if not (self.q and self.q.strip()) and not (self.doi and self.doi.strip()):
            raise ValueError("Either q or doi is required")
        return self


class IngestResponse(CamelModel):
    indexed: int = Field(description="Records written to the index after de-duplication")
    sources: list[SourceOutcome] = Field(default_factory=list, description="Per-source outcome")


class ExportFormat(str, Enum):
    BIBTEX = "bibtex"
    RIS = "ris"
    CSV = "csv"
    JSON = "json"


class ExportRequest(CamelModel):
    """Export one page of search results as citations or tabular data."""

    params: SearchParams = Field(default_factory=SearchParams, description="Search to export")
    format: ExportFormat = Field(default=ExportFormat.BIBTEX, description="Output format")


class HealthResponse(CamelModel):
    status: str = Field(description="Health status (e.g. 'healthy')")
    version: str = Field(description="Server version")
    service: str = Field(description="Service name")
    backend: str = Field(description="Active search backend kind")
    sources: list[str] = Field(description="Enabled source connectors")


class SourceInfo(CamelModel):
    name: str
    enabled: bool
    base_url: str
    supports_doi: bool
    supports_keywords: bool
