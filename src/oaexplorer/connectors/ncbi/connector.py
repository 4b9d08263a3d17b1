"""NCBI connector: PubMed through the E-utilities.

Two dependent calls: ``esearch.fcgi`` (JSON) returns PMIDs, then
``efetch.fcgi`` (XML) returns the records. An empty id list skips the
second call.
"""

from __future__ import annotations

from xml.etree.ElementTree import Element

from defusedxml import ElementTree
from pydantic import BaseModel, Field

from oaexplorer.connectors.base.connector import (
    ConnectorError,
    SourceConnector,
    clean_text,
    language_code,
    parse_year,
)
from oaexplorer.models.query import ConnectorQuery
from oaexplorer.models.record import OARecord, OAStatus, Source, utc_now_iso


class _ESearchResult(BaseModel):
    idlist: list[str] = Field(default_factory=list)


class _ESearchResponse(BaseModel):
    esearchresult: _ESearchResult


class NcbiConnector(SourceConnector):
    """Connector for `NCBI E-utilities`_ (PubMed).

    .. _NCBI E-utilities: https://www.ncbi.nlm.nih.gov/books/NBK25501/
    """

    source = Source.NCBI
    default_base_url = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"

    async def _search(self, query: ConnectorQuery) -> list[OARecord]:
        term = f"{query.normalized_doi}[DOI]" if query.doi else query.keywords
        bounds = self._year_bounds(query)
        if bounds:
            term = f"({term}) AND ({bounds[0]}:{bounds[1]}[PDAT])"

        resp = await self.client.get(
            "/esearch.fcgi",
            params=self._params(db="pubmed", term=term, retmode="json", retmax=query.max_results),
        )
        resp.raise_for_status()
        ids = _ESearchResponse.model_validate(resp.json()).esearchresult.idlist
        if not ids:
            return []
        return await self._efetch(ids)

    async def _fetch(self, source_id: str) -> OARecord | None:
        records = await self._efetch([source_id])
        return records[0] if records else None

    async def _efetch(self, ids: list[str]) -> list[OARecord]:
        resp = await self.client.get(
            "/efetch.fcgi",
            params=self._params(db="pubmed", id=",".join(ids), retmode="xml"),
        )
        resp.raise_for_status()
        try:
            root = ElementTree.fromstring(resp.text)
        except ElementTree.ParseError as e:
            raise ConnectorError(f"Invalid efetch XML: {e}") from e

        records = []
        for article in root.findall("PubmedArticle"):
            record = self._parse_article(article)
            if record is not None:
                records.append(record)
        return records

    def _params(self, **params: object) -> dict[str, object]:
        params["tool"] = "oaexplorer"
        if self._contact_email:
            params["email"] = self._contact_email
        if self._api_key:
            params["api_key"] = self._api_key
        return params

    # ── Normalization ────────────────────────────────────────────────────

    def _parse_article(self, article: Element) -> OARecord | None:
        citation = article.find("MedlineCitation")
        if citation is None:
            return None
        pmid = _text(citation.find("PMID"))
        info = citation.find("Article")
        if not pmid or info is None:
            return None

        article_ids = {
            node.get("IdType"): _text(node)
            for node in article.findall("PubmedData/ArticleIdList/ArticleId")
        }
        pmcid = article_ids.get("pmc")

        journal = info.find("Journal")
        pub_date = journal.find("JournalIssue/PubDate") if journal is not None else None
        year = None
        if pub_date is not None:
            year = parse_year(_text(pub_date.find("Year")) or _text(pub_date.find("MedlineDate")))

        abstract_parts = []
        for node in info.findall("Abstract/AbstractText"):
            text = _text(node)
            if text:
                label = node.get("Label")
                abstract_parts.append(f"{label}: {text}" if label else text)

        topics = [kw for node in citation.findall("KeywordList/Keyword") if (kw := _text(node))]
        topics += [
            mesh
            for node in citation.findall("MeshHeadingList/MeshHeading/DescriptorName")
            if (mesh := _text(node))
        ]

        return self._record(
            pmid,
            doi=article_ids.get("doi"),
            title=clean_text(_text(info.find("ArticleTitle"))),
            authors=[name for author in info.findall("AuthorList/Author") if (name := _author_name(author))],
            year=year,
            venue=clean_text(_text(journal.find("Title"))) if journal is not None else None,
            abstract=clean_text(" ".join(abstract_parts)),
            oa_status=OAStatus.PUBLISHED if pmcid else OAStatus.OTHER,
            best_pdf_url=f"https://www.ncbi.nlm.nih.gov/pmc/articles/{pmcid}/pdf/" if pmcid else None,
            landing_page=f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
            topics=topics,
            language=language_code(_text(info.find("Language"))),
            created_at=_history_date(article) or utc_now_iso(),
        )


def _text(node: Element | None) -> str | None:
    """All text inside a node, including inline markup like ``<i>``."""
    if node is None:
        return None
    text = "".join(node.itertext()).strip()
    return text or None


def _author_name(author: Element) -> str | None:
    collective = _text(author.find("CollectiveName"))
    if collective:
        return collective
    last = _text(author.find("LastName"))
    first = _text(author.find("ForeName")) or _text(author.find("Initials"))
    if last and first:
        return f"{last} {first}"
    return last


def _history_date(article: Element) -> str | None:
    node = article.find("PubmedData/History/PubMedPubDate[@PubStatus='pubmed']")
    if node is None:
        return None
    year = _text(node.find("Year"))
    if not year:
        return None
    month = (_text(node.find("Month")) or "1").zfill(2)
    day = (_text(node.find("Day")) or "1").zfill(2)
    return f"{year}-{month}-{day}T00:00:00Z"
