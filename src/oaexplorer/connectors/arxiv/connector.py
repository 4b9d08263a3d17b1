"""arXiv connector: Atom feed from the arXiv query API.

arXiv has no DOI search, so DOI-only queries return nothing. Keyword
queries use ``all:"..."``; year ranges become a ``submittedDate`` clause.
Version suffixes are dropped so every version of a paper maps to one id.
"""

from __future__ import annotations

import re
from xml.etree.ElementTree import Element

from defusedxml import ElementTree

from oaexplorer.connectors.base.connector import ConnectorError, SourceConnector, clean_text, parse_year
from oaexplorer.models.query import ConnectorQuery
from oaexplorer.models.record import OARecord, OAStatus, Source

_NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
}

_ABS_ID_RE = re.compile(r"arxiv\.org/abs/(?P<id>.+?)(?:v\d+)?$")


class ArxivConnector(SourceConnector):
    """Connector for the `arXiv API`_.

    .. _arXiv API: https://info.arxiv.org/help/api/user-manual.html
    """

    source = Source.ARXIV
    default_base_url = "https://export.arxiv.org/api"
    supports_doi = False

    async def _search(self, query: ConnectorQuery) -> list[OARecord]:
        terms = [f'all:"{_escape(query.keywords)}"']
        bounds = self._year_bounds(query)
        if bounds:
            terms.append(f"submittedDate:[{bounds[0]}01010000 TO {bounds[1]}12312359]")

        resp = await self.client.get(
            "/query",
            params={
                "search_query": " AND ".join(terms),
                "start": 0,
                "max_results": query.max_results,
                "sortBy": "relevance",
                "sortOrder": "descending",
            },
        )
        resp.raise_for_status()
        return self._parse_feed(resp.text)

    async def _fetch(self, source_id: str) -> OARecord | None:
        resp = await self.client.get("/query", params={"id_list": source_id, "max_results": 1})
        resp.raise_for_status()
        records = self._parse_feed(resp.text)
        return records[0] if records else None

    # ── Normalization ────────────────────────────────────────────────────

    def _parse_feed(self, xml_text: str) -> list[OARecord]:
        try:
            root = ElementTree.fromstring(xml_text)
        except ElementTree.ParseError as e:
            raise ConnectorError(f"Invalid arXiv feed: {e}") from e

        records = []
        for entry in root.findall("atom:entry", _NS):
            record = self._parse_entry(entry)
            if record is not None:
                records.append(record)
        return records

    def _parse_entry(self, entry: Element) -> OARecord | None:
        entry_url = _text(entry, "atom:id") or ""
        match = _ABS_ID_RE.search(entry_url)
        if not match:
            # The API reports query errors as a pseudo-entry under /api/errors.
            return None
        arxiv_id = match.group("id")

        pdf_url = None
        landing_page = None
        for link in entry.findall("atom:link", _NS):
            href = link.get("href")
            if not href:
                continue
            if link.get("title") == "pdf" or link.get("type") == "application/pdf":
                pdf_url = href.replace("http://", "https://", 1)
            elif link.get("rel") == "alternate":
                landing_page = href.replace("http://", "https://", 1)

        published = _text(entry, "atom:published")
        return self._record(
            arxiv_id,
            doi=_text(entry, "arxiv:doi"),
            title=clean_text(_text(entry, "atom:title")),
            authors=[
                name
                for author in entry.findall("atom:author", _NS)
                if (name := clean_text(_text(author, "atom:name")))
            ],
            year=parse_year(published),
            venue=clean_text(_text(entry, "arxiv:journal_ref")) or "arXiv",
            abstract=clean_text(_text(entry, "atom:summary")),
            oa_status=OAStatus.PREPRINT,
            best_pdf_url=pdf_url or f"https://arxiv.org/pdf/{arxiv_id}",
            landing_page=landing_page or f"https://arxiv.org/abs/{arxiv_id}",
            topics=[term for c in entry.findall("atom:category", _NS) if (term := c.get("term"))],
            created_at=published,
            updated_at=_text(entry, "atom:updated"),
        )


def _text(element: Element, path: str) -> str | None:
    child = element.find(path, _NS)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def _escape(text: str) -> str:
    return text.replace('"', " ")
