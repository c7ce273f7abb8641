"""Tests for the page-set builder."""

from unittest import mock

import pikepdf
import pytest
from conftest import page_count, page_rotations, page_widths

from prismpdf.editor.page_model import PageRef, PageSet
from prismpdf.services.document_backend import DocumentBackend, SaveOptions
from prismpdf.services.page_builder import build, build_from_sources, resolver_for
from prismpdf.utils.exceptions import (
    EmptySelectionError,
    PageIndexError,
    SerializeError,
    SourceReadError,
)


class TestBuild:
    def test_page_count_matches_page_set(self, make_source):
        source = make_source(5)
        for indices in ([0], [4, 3], [0, 1, 2, 3, 4], [2, 2, 2, 2, 2, 2]):
            page_set = PageSet.from_indices(indices, source.key)
            assert page_count(build_from_sources(page_set, [source])) == len(indices)

    def test_follows_page_set_order(self, make_source):
        source = make_source(4)
        page_set = PageSet.from_indices([3, 0, 2, 1], source.key)
        data = build_from_sources(page_set, [source])
        assert page_widths(data) == [103, 100, 102, 101]

    def test_interleaved_sources_keep_order(self, make_source):
        first = make_source(3, name="a.pdf", base_width=100)
        second = make_source(3, name="b.pdf", base_width=300)
        page_set = PageSet(
            [
                PageRef(0, source_key=second.key),
                PageRef(2, source_key=first.key),
                PageRef(1, source_key=second.key),
                PageRef(0, source_key=first.key),
            ]
        )
        data = build_from_sources(page_set, [first, second])
        assert page_widths(data) == [300, 102, 301, 100]

    def test_copies_once_per_source(self, make_source):
        first = make_source(3, name="a.pdf")
        second = make_source(3, name="b.pdf", base_width=300)
        page_set = PageSet.from_source(first)
        page_set.extend_from_source(second)
        page_set.pages.insert(1, PageRef(2, source_key=second.key))

        backend = DocumentBackend()
        with mock.patch.object(backend, "copy_pages", wraps=backend.copy_pages) as spy:
            build_from_sources(page_set, [first, second], backend=backend)
        assert spy.call_count == 2

    def test_rotation_is_applied(self, make_source):
        source = make_source(3)
        page_set = PageSet.from_source(source)
        page_set[0].rotation = 90
        page_set[2].rotation = 270
        data = build_from_sources(page_set, [source])
        assert page_rotations(data) == [90, 0, 270]

    def test_rotation_adds_to_existing(self, make_source):
        source = make_source(3, rotations={0: 90, 1: 270, 2: 180})
        page_set = PageSet.from_source(source)
        page_set[0].rotation = 90
        page_set[1].rotation = 90
        data = build_from_sources(page_set, [source])
        assert page_rotations(data) == [180, 0, 180]

    def test_rotation_adds_to_inherited(self, make_source):
        source = make_source(2, tree_rotation=90)
        page_set = PageSet.from_source(source)
        page_set[1].rotation = 180
        data = build_from_sources(page_set, [source])
        assert page_rotations(data) == [90, 270]

    def test_duplicates_rotate_independently(self, make_source):
        source = make_source(2)
        page_set = PageSet.from_indices([0, 0, 0], source.key)
        page_set[1].rotation = 90
        page_set[2].rotation = 180
        data = build_from_sources(page_set, [source])
        assert page_widths(data) == [100, 100, 100]
        assert page_rotations(data) == [0, 90, 180]

    def test_sources_not_mutated(self, make_source):
        source = make_source(2, rotations={0: 90})
        page_set = PageSet.from_source(source)
        page_set[0].rotation = 90
        build_from_sources(page_set, [source])
        assert DocumentBackend().get_rotation(source.pdf.pages[0]) == 90
        assert source.page_count == 2

    def test_object_stream_option(self, make_source):
        source = make_source(3)
        data = build_from_sources(
            PageSet.from_source(source), [source], options=SaveOptions(object_streams=True)
        )
        assert b"/ObjStm" in data
        assert page_count(data) == 3


class TestBuildFailures:
    def test_empty_page_set(self, make_source):
        source = make_source(2)
        with pytest.raises(EmptySelectionError):
            build_from_sources(PageSet(), [source])

    def test_index_out_of_range(self, make_source):
        source = make_source(2, name="short.pdf")
        page_set = PageSet.from_indices([0, 5], source.key)
        with pytest.raises(PageIndexError) as excinfo:
            build_from_sources(page_set, [source])
        assert excinfo.value.index == 5
        assert excinfo.value.page_count == 2
        assert excinfo.value.source_name == "short.pdf"

    def test_unknown_source(self, make_source):
        source = make_source(2)
        page_set = PageSet.from_indices([0], "not-loaded")
        with pytest.raises(SourceReadError):
            build_from_sources(page_set, [source])

    def test_serialize_failure(self, make_source):
        source = make_source(2)
        with mock.patch.object(pikepdf.Pdf, "save", side_effect=pikepdf.PdfError("disk")):
            with pytest.raises(SerializeError):
                build_from_sources(PageSet.from_source(source), [source])

    def test_custom_resolver(self, make_source):
        source = make_source(3)
        calls = []

        def resolve(ref):
            calls.append(ref.id)
            return source, 2 - ref.source_index

        page_set = PageSet.from_indices([0, 1])
        data = build(page_set, resolve)
        assert page_widths(data) == [102, 101]
        assert calls == page_set.ids()

    def test_resolver_for_maps_keys(self, make_source):
        source = make_source(1)
        resolve = resolver_for([source])
        assert resolve(PageRef(0, source_key=source.key)) == (source, 0)

    def test_resolver_for_rejects_shared_keys(self, make_source):
        first = make_source(1, name="a.pdf")
        second = make_source(1, name="b.pdf")
        second.key = first.key
        with pytest.raises(ValueError, match="share a key"):
            resolver_for([first, second])

    def test_resolver_for_accepts_repeated_source(self, make_source):
        source = make_source(1)
        resolve = resolver_for([source, source])
        assert resolve(PageRef(0, source_key=source.key)) == (source, 0)

    def test_sources_with_same_key_copied_separately(self, make_source):
        first = make_source(2, base_width=100)
        second = make_source(2, base_width=300)
        second.key = first.key
        owners = {}

        def resolve(ref):
            return owners[ref.id], ref.source_index

        page_set = PageSet.from_indices([1, 0, 1], first.key)
        owners[page_set[0].id] = first
        owners[page_set[1].id] = second
        owners[page_set[2].id] = second

        assert page_widths(build(page_set, resolve)) == [101, 300, 301]
