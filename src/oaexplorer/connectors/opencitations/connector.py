"""OpenCitations connector: works citing a DOI, from the COCI index.

The citations endpoint carries no titles, so the citing DOI stands in as
the title. Federation merges these placeholders with richer records for
the same DOI when another source returns them. A single record fetched by
DOI comes from the metadata endpoint and has real bibliographic fields.
"""

from __future__ import annotations

import re
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, TypeAdapter

from oaexplorer.connectors.base.connector import SourceConnector, clean_text, doi_url, is_pdf_url, parse_year
from oaexplorer.models.query import ConnectorQuery
from oaexplorer.models.record import OARecord, Source, normalize_doi, utc_now_iso

_DOI_TOKEN_RE = re.compile(r"(?:^|\s)doi:(\S+)")
_ORCID_RE = re.compile(r"\d{4}-\d{4}-\d{4}-\d{3}[\dX]")


class _Citation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    oci: str | None = None
    citing: str
    cited: str | None = None
    creation: str | None = None


_CITATIONS = TypeAdapter(list[_Citation])


class _Metadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    doi: str | None = None
    title: str | None = None
    author: str | None = None
    year: str | None = None
    source_title: str | None = None
    oa_link: str | None = None


_METADATA = TypeAdapter(list[_Metadata])


class OpenCitationsConnector(SourceConnector):
    """Connector for the `OpenCitations COCI API`_.

    .. _OpenCitations COCI API: https://opencitations.net/index/coci/api/v1
    """

    source = Source.OPENCITATIONS
    default_base_url = "https://opencitations.net/index/coci/api/v1"
    supports_keywords = False
    exact_doi_results = False

    async def _search(self, query: ConnectorQuery) -> list[OARecord]:
        doi = query.normalized_doi
        if not doi:
            return []
        resp = await self.client.get(f"/citations/{doi}")
        if resp.status_code == 404:
            return []
        resp.raise_for_status()

        records: dict[str, OARecord] = {}
        for citation in _CITATIONS.validate_python(resp.json()):
            citing = _citing_doi(citation.citing)
            if not citing or citing in records:
                continue
            record = self._record(
                citing,
                doi=citing,
                title=citing,
                year=parse_year(citation.creation),
                landing_page=doi_url(citing),
                created_at=_creation_timestamp(citation.creation),
            )
            if record is not None:
                records[citing] = record
        return list(records.values())

    async def _fetch(self, source_id: str) -> OARecord | None:
        doi = normalize_doi(source_id)
        if not doi:
            return None
        resp = await self.client.get(f"/metadata/{quote(doi, safe='/')}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()

        entry = next((m for m in _METADATA.validate_python(resp.json()) if normalize_doi(m.doi) == doi), None)
        if entry is None:
            return None
        year = parse_year(entry.year)
        return self._record(
            doi,
            doi=doi,
            title=clean_text(entry.title) or doi,
            authors=_authors(entry.author),
            year=year,
            venue=clean_text(entry.source_title),
            best_pdf_url=entry.oa_link if is_pdf_url(entry.oa_link) else None,
            landing_page=doi_url(doi),
            created_at=f"{year}-01-01T00:00:00Z" if year else utc_now_iso(),
        )


def _citing_doi(value: str) -> str | None:
    """DOI from a COCI ``citing`` field (bare DOI or ``doi:... pmid:...`` list)."""
    match = _DOI_TOKEN_RE.search(value)
    return normalize_doi(match.group(1) if match else value)


def _authors(value: str | None) -> list[str]:
    """``"Last, First, ORCID; ..."`` as ``"First Last"`` display names."""
    names = []
    for author in (value or "").split(";"):
        parts = [p.strip() for p in author.split(",") if p.strip() and not _ORCID_RE.fullmatch(p.strip())]
        if len(parts) >= 2:
            names.append(f"{parts[1]} {parts[0]}")
        elif parts:
            names.append(parts[0])
    return names


def _creation_timestamp(creation: str | None) -> str:
    if not creation:
        return utc_now_iso()
    parts = creation.split("-")
    while len(parts) < 3:
        parts.append("01")
    return "-".join(parts[:3]) + "T00:00:00Z"
