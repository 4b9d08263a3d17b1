"""Citation and tabular export of search results."""

from __future__ import annotations

import csv
import io
import json
import re

from oaexplorer.models.record import OARecord, OAStatus, Source
from oaexplorer.models.response import ExportFormat

MEDIA_TYPES: dict[ExportFormat, str] = {
    ExportFormat.BIBTEX: "application/x-bibtex",
    ExportFormat.RIS: "application/x-research-info-systems",
    ExportFormat.CSV: "text/csv",
    ExportFormat.JSON: "application/json",
}

FILE_EXTENSIONS: dict[ExportFormat, str] = {
    ExportFormat.BIBTEX: "bib",
    ExportFormat.RIS: "ris",
    ExportFormat.CSV: "csv",
    ExportFormat.JSON: "json",
}

CSV_COLUMNS = [
    "id",
    "title",
    "authors",
    "year",
    "venue",
    "doi",
    "source",
    "oaStatus",
    "bestPdfUrl",
    "landingPage",
    "topics",
]

_PREPRINT_SOURCES = {Source.ARXIV, Source.BIORXIV, Source.MEDRXIV}
_CONFERENCE_MARKERS = ("conference", "proceedings", "workshop", "symposium")
_MAX_BIBTEX_AUTHORS = 20
_MAX_BIBTEX_ABSTRACT = 500

_BIBTEX_ESCAPES = [
    ("\\", r"\textbackslash{}"),
    ("{", r"\{"),
    ("}", r"\}"),
    ("$", r"\$"),
    ("&", r"\&"),
    ("%", r"\%"),
    ("#", r"\#"),
    ("^", r"\textasciicircum{}"),
    ("_", r"\_"),
    ("~", r"\textasciitilde{}"),
]


def _entry_kind(record: OARecord) -> str:
    """``preprint``, ``conference`` or ``article``."""
    if record.oa_status == OAStatus.PREPRINT or record.source in _PREPRINT_SOURCES:
        return "preprint"
    venue = (record.venue or "").lower()
    if any(marker in venue for marker in _CONFERENCE_MARKERS):
        return "conference"
    return "article"


def escape_bibtex(text: str) -> str:
    # Placeholder keeps the braces of \textbackslash{} from being escaped again.
    out = text.replace("\\", "\0")
    for char, replacement in _BIBTEX_ESCAPES[1:]:
        out = out.replace(char, replacement)
    return out.replace("\0", _BIBTEX_ESCAPES[0][1])


def bibtex_key(record: OARecord) -> str:
    """First-author last name, year, first title word."""
    key = "Unknown"
    if record.authors:
        last_name = record.authors[0].split()[-1] if record.authors[0].split() else record.authors[0]
        key = re.sub(r"[^A-Za-z]", "", last_name) or "Unknown"
    if record.year:
        key += str(record.year)
    first_word = re.sub(r"[^A-Za-z]", "", record.title.split()[0]) if record.title.split() else ""
    return key + first_word


def to_bibtex_entry(record: OARecord, key: str | None = None) -> str:
    kind = _entry_kind(record)
    entry_type = {"preprint": "misc", "conference": "inproceedings"}.get(kind, "article")

    fields = [("title", escape_bibtex(record.title))]
    if record.authors:
        authors = record.authors[:_MAX_BIBTEX_AUTHORS]
        joined = " and ".join(authors)
        if len(record.authors) > _MAX_BIBTEX_AUTHORS:
            joined += " and others"
        fields.append(("author", joined))
    if record.year:
        fields.append(("year", str(record.year)))
    if record.venue and kind != "preprint":
        fields.append(("journal" if kind == "article" else "booktitle", escape_bibtex(record.venue)))
    if record.publisher:
        fields.append(("publisher", escape_bibtex(record.publisher)))
    if record.doi:
        fields.append(("doi", record.doi))
    url = record.landing_page or record.best_pdf_url
    if url:
        fields.append(("url", url))
    if record.abstract:
        abstract = record.abstract
        if len(abstract) > _MAX_BIBTEX_ABSTRACT:
            abstract = abstract[:_MAX_BIBTEX_ABSTRACT] + "..."
        fields.append(("abstract", escape_bibtex(abstract)))
    if record.topics:
        fields.append(("keywords", escape_bibtex(", ".join(record.topics))))
    fields.append(("note", f"Retrieved from {record.source.value}"))

    body = ",\n".join(f"  {name} = {{{value}}}" for name, value in fields)
    return f"@{entry_type}{{{key or bibtex_key(record)},\n{body}\n}}"


def to_bibtex(records: list[OARecord]) -> str:
    """BibTeX for a batch; repeated keys get ``a``, ``b``... suffixes."""
    seen: dict[str, int] = {}
    entries = []
    for record in records:
        key = bibtex_key(record)
        count = seen.get(key, 0)
        seen[key] = count + 1
        if count:
            key = f"{key}{chr(ord('a') + (count - 1) % 26)}"
        entries.append(to_bibtex_entry(record, key))
    return "\n\n".join(entries) + ("\n" if entries else "")


def to_ris_entry(record: OARecord) -> str:
    ris_type = {"preprint": "GEN", "conference": "CONF"}.get(_entry_kind(record), "JOUR")
    lines = [f"TY  - {ris_type}", f"TI  - {record.title}"]
    lines += [f"AU  - {author}" for author in record.authors]
    if record.year:
        lines.append(f"PY  - {record.year}")
    if record.venue:
        lines.append(f"T2  - {record.venue}")
    if record.publisher:
        lines.append(f"PB  - {record.publisher}")
    if record.doi:
        lines.append(f"DO  - {record.doi}")
    url = record.landing_page or record.best_pdf_url
    if url:
        lines.append(f"UR  - {url}")
    if record.abstract:
        lines.append(f"AB  - {record.abstract}")
    lines += [f"KW  - {topic}" for topic in record.topics]
    if record.language:
        lines.append(f"LA  - {record.language}")
    lines.append("ER  - ")
    return "\n".join(lines)


def to_ris(records: list[OARecord]) -> str:
    return "\n\n".join(to_ris_entry(r) for r in records) + ("\n" if records else "")


def to_csv(records: list[OARecord]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_COLUMNS)
    for r in records:
        writer.writerow(
            [
                r.id,
                r.title,
                "; ".join(r.authors),
                r.year or "",
                r.venue or "",
                r.doi or "",
                r.source.value,
                r.oa_status.value if r.oa_status else "",
                r.best_pdf_url or "",
                r.landing_page or "",
                "; ".join(r.topics),
            ]
        )
    return output.getvalue()


def to_json(records: list[OARecord]) -> str:
    return json.dumps([r.to_document() for r in records], ensure_ascii=False, indent=2)


_EXPORTERS = {
    ExportFormat.BIBTEX: to_bibtex,
    ExportFormat.RIS: to_ris,
    ExportFormat.CSV: to_csv,
    ExportFormat.JSON: to_json,
}


def export_records(records: list[OARecord], fmt: ExportFormat) -> str:
    """Render records in ``fmt``."""
    return _EXPORTERS[fmt](records)
