"""DOI de-duplication across sources.

Records sharing a normalized DOI collapse into the record from the
highest-priority source. Empty fields of that record are filled from the
others in priority order and topics are unioned. Records without a DOI
pass through untouched. Output order follows the first appearance of
each DOI group.
"""

from __future__ import annotations

from oaexplorer.models.record import OARecord, Source

SOURCE_PRIORITY: tuple[Source, ...] = (
    Source.EUROPEPMC,
    Source.CORE,
    Source.OPENAIRE,
    Source.ARXIV,
    Source.BIORXIV,
    Source.MEDRXIV,
    Source.DOAJ,
    Source.NCBI,
    Source.DATACITE,
    Source.OPENCITATIONS,
)

_FILLABLE = ("year", "venue", "abstract", "oa_status", "best_pdf_url", "landing_page", "publisher", "updated_at")


def _priority(record: OARecord) -> int:
    try:
        return SOURCE_PRIORITY.index(record.source)
    except ValueError:
        return len(SOURCE_PRIORITY)


def merge_group(records: list[OARecord]) -> OARecord:
    """Merge records that share one DOI."""
    ordered = sorted(records, key=_priority)
    primary, rest = ordered[0], ordered[1:]
    if not rest:
        return primary

    update: dict[str, object] = {}
    for field in _FILLABLE:
        if getattr(primary, field) is None:
            value = next((getattr(r, field) for r in rest if getattr(r, field) is not None), None)
            if value is not None:
                update[field] = value
    if not primary.authors:
        authors = next((r.authors for r in rest if r.authors), None)
        if authors:
            update["authors"] = list(authors)

    topics = list(primary.topics)
    for record in rest:
        topics.extend(t for t in record.topics if t not in topics)
    if topics != primary.topics:
        update["topics"] = topics

    return primary.model_copy(update=update) if update else primary


def merge_records(records: list[OARecord]) -> list[OARecord]:
    """De-duplicate by id and DOI, keeping first-appearance order."""
    groups: dict[str, list[OARecord]] = {}
    slots: list[str | OARecord] = []
    seen_ids: set[str] = set()
    for record in records:
        if record.id in seen_ids:
            continue
        seen_ids.add(record.id)
        if record.doi:
            if record.doi not in groups:
                groups[record.doi] = []
                slots.append(record.doi)
            groups[record.doi].append(record)
        else:
            slots.append(record)

    return [merge_group(groups[slot]) if isinstance(slot, str) else slot for slot in slots]
