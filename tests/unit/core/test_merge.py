"""Tests for DOI de-duplication."""

from __future__ import annotations

from collections.abc import Callable

from oaexplorer.core.merge import SOURCE_PRIORITY, merge_group, merge_records
from oaexplorer.models.record import OARecord, OAStatus, Source


class TestMergeGroup:
    def test_priority_source_wins(self, make_record: Callable[..., OARecord]) -> None:
        arxiv = make_record(source="arxiv", source_id="1", doi="10.1/x", title="Preprint title")
        epmc = make_record(source="europepmc", source_id="2", doi="10.1/x", title="Published title")

        merged = merge_group([arxiv, epmc])

        assert merged.id == "europepmc:2"
        assert merged.title == "Published title"

    def test_missing_fields_filled_in_priority_order(self, make_record: Callable[..., OARecord]) -> None:
        epmc = make_record(source="europepmc", source_id="2", doi="10.1/x", authors=[], topics=["biology"])
        core = make_record(
            source="core",
            source_id="3",
            doi="10.1/x",
            best_pdf_url="https://core.ac.uk/x.pdf",
            abstract="From CORE",
            authors=[],
            topics=["genomics", "biology"],
        )
        arxiv = make_record(
            source="arxiv",
            source_id="1",
            doi="10.1/x",
            abstract="From arXiv",
            oa_status=OAStatus.PREPRINT,
            authors=["Grace Hopper"],
        )

        merged = merge_group([arxiv, core, epmc])

        assert merged.source == Source.EUROPEPMC
        assert merged.abstract == "From CORE"
        assert merged.best_pdf_url == "https://core.ac.uk/x.pdf"
        assert merged.oa_status == OAStatus.PREPRINT
        assert merged.authors == ["Grace Hopper"]
        assert merged.topics == ["biology", "genomics"]

    def test_present_fields_are_kept(self, make_record: Callable[..., OARecord]) -> None:
        epmc = make_record(source="europepmc", source_id="2", doi="10.1/x", venue="Nature")
        core = make_record(source="core", source_id="3", doi="10.1/x", venue="Repository")
        assert merge_group([core, epmc]).venue == "Nature"

    def test_single_record_unchanged(self, make_record: Callable[..., OARecord]) -> None:
        record = make_record(doi="10.1/x")
        assert merge_group([record]) is record


class TestMergeRecords:
    def test_records_without_doi_pass_through(self, make_record: Callable[..., OARecord]) -> None:
        a = make_record(source_id="1")
        b = make_record(source_id="2")
        assert merge_records([a, b]) == [a, b]

    def test_first_appearance_order(self, make_record: Callable[..., OARecord]) -> None:
        first = make_record(source="arxiv", source_id="1", doi="10.1/a")
        plain = make_record(source="doaj", source_id="x")
        second = make_record(source="arxiv", source_id="2", doi="10.1/b")
        dup = make_record(source="europepmc", source_id="9", doi="10.1/a")

        merged = merge_records([first, plain, second, dup])

        assert [r.id for r in merged] == ["europepmc:9", "doaj:x", "arxiv:2"]

    def test_duplicate_ids_dropped(self, make_record: Callable[..., OARecord]) -> None:
        record = make_record()
        assert len(merge_records([record, record])) == 1

    def test_opencitations_placeholder_loses(self, make_record: Callable[..., OARecord]) -> None:
        placeholder = make_record(source="opencitations", source_id="10.1/c", doi="10.1/c", title="10.1/c")
        real = make_record(source="datacite", source_id="10.1/c", doi="10.1/c", title="Real title")
        [merged] = merge_records([placeholder, real])
        assert merged.title == "Real title"

    def test_every_source_has_a_priority(self) -> None:
        assert set(SOURCE_PRIORITY) == set(Source)
