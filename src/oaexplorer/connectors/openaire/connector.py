"""OpenAIRE connector: publications search (open access only).

OpenAIRE answers in a JSON rendering of its XML schema: text lives under
``"$"``, attributes under ``"@name"``, and any element may be a single
object or a list. ``_values`` and ``_first`` flatten that shape. Container
elements that arrive as anything but an object are treated as missing.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from oaexplorer.connectors.base.connector import (
    SourceConnector,
    clean_text,
    doi_url,
    is_pdf_url,
    language_code,
    parse_year,
)
from oaexplorer.models.query import ConnectorQuery
from oaexplorer.models.record import OARecord, OAStatus, Source, utc_now_iso


def _object_or_none(v: Any) -> Any:
    return v if isinstance(v, dict) else None


class _Vendor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _Header(_Vendor):
    object_identifier: Any = Field(default=None, alias="dri:objIdentifier")


class _Children(_Vendor):
    instance: Any = None


class _Result(_Vendor):
    title: Any = None
    creator: Any = None
    pid: Any = None
    dateofacceptance: Any = None
    journal: Any = None
    description: Any = None
    subject: Any = None
    language: Any = None
    publisher: Any = None
    bestaccessright: Any = None
    children: _Children | None = None

    @field_validator("children", mode="before")
    @classmethod
    def _container(cls, v: Any) -> Any:
        return _object_or_none(v)


class _Entity(_Vendor):
    result: _Result | None = Field(default=None, alias="oaf:result")

    @field_validator("result", mode="before")
    @classmethod
    def _container(cls, v: Any) -> Any:
        return _object_or_none(v)


class _Metadata(_Vendor):
    entity: _Entity | None = Field(default=None, alias="oaf:entity")

    @field_validator("entity", mode="before")
    @classmethod
    def _container(cls, v: Any) -> Any:
        return _object_or_none(v)


class _Item(_Vendor):
    header: _Header | None = None
    metadata: _Metadata | None = None

    @field_validator("header", "metadata", mode="before")
    @classmethod
    def _container(cls, v: Any) -> Any:
        return _object_or_none(v)


class _Results(_Vendor):
    result: list[_Item] = Field(default_factory=list)

    @field_validator("result", mode="before")
    @classmethod
    def _single_to_list(cls, v: Any) -> Any:
        if v is None:
            return []
        items = v if isinstance(v, list) else [v]
        return [item for item in items if isinstance(item, dict)]


class _Response(_Vendor):
    results: _Results | None = None

    @field_validator("results", mode="before")
    @classmethod
    def _container(cls, v: Any) -> Any:
        return _object_or_none(v)


class _Envelope(_Vendor):
    response: _Response


class OpenAireConnector(SourceConnector):
    """Connector for the `OpenAIRE Search API`_.

    .. _OpenAIRE Search API: https://graph.openaire.eu/docs/apis/search-api/
    """

    source = Source.OPENAIRE
    default_base_url = "https://api.openaire.eu/search"

    async def _search(self, query: ConnectorQuery) -> list[OARecord]:
        params: dict[str, Any] = {
            "format": "json",
            "size": query.max_results,
            "page": 1,
            "OA": "true",
        }
        if query.doi:
            params["doi"] = query.normalized_doi
        else:
            params["keywords"] = query.keywords
        if query.year_from is not None:
            params["fromDateAccepted"] = f"{query.year_from}-01-01"
        if query.year_to is not None:
            params["toDateAccepted"] = f"{query.year_to}-12-31"
        return await self._publications(params)

    async def _fetch(self, source_id: str) -> OARecord | None:
        records = await self._publications({"format": "json", "openairePublicationID": source_id})
        return next((r for r in records if r.source_id == source_id), None)

    async def _publications(self, params: dict[str, Any]) -> list[OARecord]:
        resp = await self.client.get("/publications", params=params)
        resp.raise_for_status()
        envelope = _Envelope.model_validate(resp.json())
        items = envelope.response.results.result if envelope.response.results else []
        return [r for item in items if (r := self._normalize(item))]

    def _normalize(self, item: _Item) -> OARecord | None:
        object_id = _first(item.header.object_identifier) if item.header else None
        entity = item.metadata.entity if item.metadata else None
        result = entity.result if entity else None
        if not object_id or result is None:
            return None

        titles = _nodes(result.title)
        main_title = next((t for t in titles if t.get("@classid") == "main title"), titles[0] if titles else {})
        creators = sorted(_nodes(result.creator), key=_rank)
        doi = next(
            (_text(p) for p in _nodes(result.pid) if p.get("@classid") == "doi"),
            None,
        )

        instances = _nodes(result.children.instance) if result.children else []
        urls = [
            url
            for instance in instances
            for resource in _nodes(instance.get("webresource"))
            if (url := _first(resource.get("url")))
        ]
        pdf_url = next((u for u in urls if is_pdf_url(u)), None)

        access = _attribute(result.bestaccessright, "@classid") or ""
        accepted = _first(result.dateofacceptance)
        return self._record(
            object_id,
            doi=doi,
            title=clean_text(_text(main_title)),
            authors=[name for c in creators if (name := _text(c))],
            year=parse_year(accepted),
            venue=_first(result.journal),
            abstract=clean_text(" ".join(_values(result.description))),
            oa_status=OAStatus.PUBLISHED if access.upper() == "OPEN" else OAStatus.OTHER,
            best_pdf_url=pdf_url,
            landing_page=doi_url(doi) or (urls[0] if urls else None),
            topics=[s for node in _nodes(result.subject) if (s := _text(node))],
            language=language_code(_attribute(result.language, "@classid")),
            publisher=_first(result.publisher),
            created_at=f"{accepted}T00:00:00Z" if accepted else utc_now_iso(),
        )


def _nodes(value: Any) -> list[dict[str, Any]]:
    if value is None:
        return []
    items = value if isinstance(value, list) else [value]
    return [i if isinstance(i, dict) else {"$": i} for i in items]


def _text(node: dict[str, Any]) -> str | None:
    value = node.get("$")
    if value is None:
        return None
    return str(value).strip() or None


def _values(value: Any) -> list[str]:
    return [t for node in _nodes(value) if (t := _text(node))]


def _first(value: Any) -> str | None:
    values = _values(value)
    return values[0] if values else None


def _rank(creator: dict[str, Any]) -> int:
    rank = str(creator.get("@rank") or "")
    return int(rank) if rank.isdigit() else 0


def _attribute(value: Any, name: str) -> str | None:
    node = value[0] if isinstance(value, list) and value else value
    if not isinstance(node, dict):
        return None
    attr = node.get(name)
    return str(attr) if attr is not None else None
