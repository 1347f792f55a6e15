"""播放列表改写和切片透传测试."""

import io

import pytest

from hlsmedia.transcode.playlist import (
    ManifestNotFound,
    PlaylistStreamer,
    SegmentNotFound,
    iter_lines,
    rewrite_playlist_line,
    segment_content_type,
)

from tests.fakes import VIDEO_PLAYLIST

BASE = "http://localhost:8080/api/stream/1/video"


class TestRewriteLine:
    """单行改写规则."""

    @pytest.mark.parametrize("line, expected", [
        (b"segment-000.ts\n", f"{BASE}/segment-000.ts\n".encode()),
        (b"segment-003.aac\n", f"{BASE}/segment-003.aac\n".encode()),
        (b"segment-000.ts", f"{BASE}/segment-000.ts".encode()),
        (b"segment-000.ts\r\n", f"{BASE}/segment-000.ts\r\n".encode()),
    ])
    def test_segment_lines(self, line, expected) -> None:
        assert rewrite_playlist_line(line, BASE) == expected

    @pytest.mark.parametrize("line", [
        b"#EXTM3U\n",
        b"#EXTINF:10.000000,\n",
        b"#EXT-X-ENDLIST\r\n",
        b"\n",
        b"segment-000.ts.bak\n",
        b"#EXTINF:10,caf\xe9\n",
    ])
    def test_other_lines_untouched(self, line) -> None:
        assert rewrite_playlist_line(line, BASE) == line

    def test_base_used_as_given(self) -> None:
        """前缀原样拼接，不做规范化."""
        assert rewrite_playlist_line(b"segment-000.ts\n", "/stream") == b"/stream/segment-000.ts\n"


class TestIterLines:
    """按块读取后的行切分."""

    def test_lines_across_chunk_boundaries(self) -> None:
        data = VIDEO_PLAYLIST.encode()

        lines = list(iter_lines(io.BytesIO(data), chunk_size=7))

        assert b"".join(lines) == data
        assert b"segment-001.ts\n" in lines

    def test_last_line_without_newline(self) -> None:
        lines = list(iter_lines(io.BytesIO(b"#EXTM3U\nsegment-000.ts"), chunk_size=4))

        assert lines[-1] == b"segment-000.ts"

    def test_crlf_preserved(self) -> None:
        data = b"#EXTM3U\r\nsegment-000.ts\r\n"

        assert b"".join(iter_lines(io.BytesIO(data), chunk_size=3)) == data

    def test_non_utf8_bytes_preserved(self) -> None:
        data = b"#EXTM3U\n#EXTINF:10,caf\xe9\xff\nsegment-000.ts\n"

        assert b"".join(iter_lines(io.BytesIO(data), chunk_size=5)) == data


class TestSegmentContentType:
    def test_known_types(self) -> None:
        assert segment_content_type("segment-000.ts") == "video/mp2t"
        assert segment_content_type("segment-000.aac") == "audio/aac"

    def test_unknown_type(self) -> None:
        assert segment_content_type("poster.jpg") == "application/octet-stream"


class TestPlaylistStreamer:
    """PlaylistStreamer 测试."""

    @pytest.fixture
    def streamer(self, storage) -> PlaylistStreamer:
        storage.objects["media/1/video/index.m3u8"] = VIDEO_PLAYLIST.encode()
        storage.objects["media/1/video/segment-000.ts"] = bytes(range(256)) * 100
        return PlaylistStreamer(storage, buffer_size=64)

    def test_manifest_rewritten(self, streamer) -> None:
        body = b"".join(streamer.stream_manifest(1, "video", BASE)).decode()

        assert f"{BASE}/segment-000.ts\n" in body
        assert f"{BASE}/segment-001.ts\n" in body
        assert body.startswith("#EXTM3U\n#EXT-X-VERSION:3\n")
        assert body.endswith("#EXT-X-ENDLIST\n")

    def test_non_segment_lines_identical(self, streamer) -> None:
        body = b"".join(streamer.stream_manifest(1, "video", BASE)).decode()

        expected = [line for line in VIDEO_PLAYLIST.splitlines() if not line.endswith(".ts")]
        actual = [line for line in body.splitlines() if not line.endswith(".ts")]
        assert actual == expected

    def test_missing_manifest_raises_before_iteration(self, streamer) -> None:
        """对象不存在时调用即失败，不必开始迭代."""
        with pytest.raises(ManifestNotFound):
            streamer.stream_manifest(1, "audio-0", BASE)

    def test_segment_bytes_identical(self, streamer, storage) -> None:
        body = b"".join(streamer.stream_segment(1, "video", "segment-000.ts"))

        assert body == storage.objects["media/1/video/segment-000.ts"]

    def test_missing_segment(self, streamer) -> None:
        with pytest.raises(SegmentNotFound):
            streamer.stream_segment(1, "video", "segment-099.ts")

    def test_stream_closed_after_iteration(self, storage) -> None:
        """迭代结束后关闭底层流."""
        body = io.BytesIO(b"segment-000.ts\n")
        storage.get = lambda key: body

        list(PlaylistStreamer(storage).stream_manifest(1, "video", BASE))

        assert body.closed

    def test_non_utf8_directive_passes_through(self, storage) -> None:
        """非 UTF-8 字节的指令行按原字节输出."""
        storage.objects["media/2/video/index.m3u8"] = b"#EXTM3U\n#EXTINF:10,caf\xe9\nsegment-000.ts\n"

        body = b"".join(PlaylistStreamer(storage, buffer_size=4).stream_manifest(2, "video", BASE))

        assert body == b"#EXTM3U\n#EXTINF:10,caf\xe9\n" + f"{BASE}/segment-000.ts\n".encode()
