"""Tests for walking ZIP archives to their first recognized entry."""

import pytest

from datapeek.errors import DecodeError, ErrorCode
from datapeek.models.request import SourceFormat
from datapeek.sampling.archive import walk_archive

CSV = b"id,name\n1,a\n2,b\n3,c\n"


class TestWalkArchive:

    @pytest.mark.asyncio
    async def test_skips_unrecognized_entries(self, make_ctx, make_stream, build_zip):
        ctx, result = make_ctx(size=2)
        stream, _ = make_stream(build_zip([("readme.txt", b"hello"), ("data.csv", CSV)]))
        fmt = await walk_archive(stream, ctx)
        assert fmt is SourceFormat.DELIMITED
        assert result.conform.type is SourceFormat.DELIMITED
        assert result.conform.csvsplit == ","
        assert result.fields == ["id", "name"]
        assert result.results == [{"id": "1", "name": "a"}, {"id": "2", "name": "b"}]

    @pytest.mark.asyncio
    async def test_no_recognized_entry(self, make_ctx, make_stream, build_zip):
        ctx, result = make_ctx(size=2)
        stream, _ = make_stream(build_zip([("readme.txt", b"hello")]))
        with pytest.raises(DecodeError) as exc:
            await walk_archive(stream, ctx)
        assert exc.value.code is ErrorCode.NO_RECOGNIZED_ENTRY
        assert exc.value.message == (
            "Could not determine type from zip file https://example.com/data"
        )
        assert result.results == []

    @pytest.mark.asyncio
    async def test_only_first_recognized_entry(
        self, make_ctx, make_stream, build_zip, geojson_bytes
    ):
        ctx, result = make_ctx(size=10)
        stream, _ = make_stream(build_zip([
            ("first.geojson", geojson_bytes([{"k": 1}])),
            ("second.csv", CSV),
        ]))
        fmt = await walk_archive(stream, ctx)
        assert fmt is SourceFormat.GEOJSON
        assert result.results == [{"k": 1}]
        assert result.conform.csvsplit is None

    @pytest.mark.asyncio
    async def test_directories_are_skipped(self, make_ctx, make_stream, build_zip):
        ctx, result = make_ctx(size=1)
        stream, _ = make_stream(build_zip([("nested/", b""), ("nested/DATA.CSV", CSV)]))
        await walk_archive(stream, ctx)
        assert result.results == [{"id": "1", "name": "a"}]

    @pytest.mark.asyncio
    async def test_dbf_entry(self, make_ctx, make_stream, build_zip, build_dbf):
        ctx, result = make_ctx(size=5)
        table = build_dbf([("NAME", "C", 8)], [("one",), ("two",)])
        stream, _ = make_stream(build_zip([
            ("parcels.shp", b"\x00" * 100),
            ("parcels.dbf", table),
        ]))
        fmt = await walk_archive(stream, ctx)
        assert fmt is SourceFormat.SHAPEFILE
        assert result.fields == ["NAME"]
        assert result.results == [{"NAME": "one"}, {"NAME": "two"}]

    @pytest.mark.asyncio
    async def test_offset_applies_inside_entry(self, make_ctx, make_stream, build_zip):
        ctx, result = make_ctx(size=1, offset=2)
        stream, _ = make_stream(build_zip([("data.csv", CSV)]))
        await walk_archive(stream, ctx)
        assert result.results == [{"id": "3", "name": "c"}]

    @pytest.mark.asyncio
    async def test_not_a_zip(self, make_ctx, make_stream):
        ctx, _ = make_ctx(size=1)
        stream, _ = make_stream(b"definitely not a zip archive")
        with pytest.raises(DecodeError) as exc:
            await walk_archive(stream, ctx)
        assert exc.value.code is ErrorCode.BAD_ARCHIVE
        assert exc.value.message.startswith("Error retrieving file https://example.com/data: ")

    @pytest.mark.asyncio
    async def test_spools_to_scope(self, make_ctx, make_stream, build_zip, scope):
        ctx, _ = make_ctx(size=1)
        stream, _ = make_stream(build_zip([("data.csv", CSV)]))
        await walk_archive(stream, ctx)
        assert [p.suffix for p in scope.paths] == [".zip"]
        assert stream.closed

    @pytest.mark.asyncio
    async def test_custom_dispatch(self, make_ctx, make_stream, build_zip):
        ctx, _ = make_ctx(size=1)
        seen = []

        async def fake_decoder(entry, ctx):
            seen.append(await entry.read())

        stream, _ = make_stream(build_zip([("data.tsv", b"a\tb\n")]))
        await walk_archive(stream, ctx, dispatch=lambda fmt: fake_decoder)
        assert seen == [b"a\tb\n"]
