"""测试用的假对象存储和假 FFmpeg."""

import io
import os
from typing import Dict, List, Optional

from hlsmedia.transcode.encoder import EncoderNotFound
from hlsmedia.transcode.models import MediaKind

VIDEO_PLAYLIST = (
    "#EXTM3U\n"
    "#EXT-X-VERSION:3\n"
    "#EXT-X-TARGETDURATION:10\n"
    "#EXT-X-MEDIA-SEQUENCE:0\n"
    "#EXTINF:10.000000,\n"
    "segment-000.ts\n"
    "#EXTINF:4.200000,\n"
    "segment-001.ts\n"
    "#EXT-X-ENDLIST\n"
)


class FakeObjectStorage:
    """内存对象存储，接口与 ObjectStorage 一致。"""

    def __init__(self, bucket: str = "stream"):
        self.bucket = bucket
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.fail_on: Optional[str] = None
        self.put_calls: List[tuple] = []

    def put(self, key, content_type, stream, size=-1):
        self.put_calls.append((key, content_type, size))
        if self.fail_on and key.endswith(self.fail_on):
            raise IOError(f"simulated upload failure for {key}")
        self.objects[key] = stream.read()
        self.content_types[key] = content_type

    def get(self, key):
        if key not in self.objects:
            return None
        return io.BytesIO(self.objects[key])

    def list(self, prefix):
        return sorted(key for key in self.objects if key.startswith(prefix))

    def delete(self, key):
        self.objects.pop(key, None)
        self.content_types.pop(key, None)


class FakeToolchain:
    """替代 FFmpeg 的假实现：按媒体类型写出播放列表和切片。"""

    def __init__(
        self,
        kind: MediaKind = MediaKind.VIDEO,
        exit_code: int = 0,
        available: bool = True,
        write_index: bool = True,
        chunk_count: int = 2,
    ):
        self.kind = kind
        self.exit_code = exit_code
        self.available = available
        self.write_index = write_index
        self.chunk_count = chunk_count
        self.encoded: List[str] = []

    def locate(self):
        if not self.available:
            raise EncoderNotFound("FFmpeg not found")
        return "/usr/bin"

    def probe(self, source, cwd=None):
        return self.kind

    def encode(self, source, kind, target_dir):
        self.encoded.append(source)
        extension = "ts" if kind == MediaKind.VIDEO else "aac"
        if self.write_index:
            with open(os.path.join(target_dir, "index.m3u8"), "w", encoding="utf-8") as f:
                f.write(VIDEO_PLAYLIST.replace(".ts", f".{extension}"))
        for index in range(self.chunk_count):
            with open(os.path.join(target_dir, f"segment-{index:03d}.{extension}"), "wb") as f:
                f.write(f"{os.path.basename(source)}-{index}".encode())
        return self.exit_code
