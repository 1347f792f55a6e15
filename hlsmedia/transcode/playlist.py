"""
HLS 播放列表流式输出

从对象存储读取已发布的播放列表，逐行把切片引用改写为绝对地址后输出；
切片按原样透传。
"""

import logging
from typing import Iterator, BinaryIO, Tuple

from .ffmpeg import INDEX_FILE_NAME
from .publisher import get_media_object_prefix

logger = logging.getLogger(__name__)

SEGMENT_EXTENSIONS = (b".ts", b".aac")

SEGMENT_CONTENT_TYPES = {
    ".ts": "video/mp2t",
    ".aac": "audio/aac",
}

PLAYLIST_CONTENT_TYPE = "application/vnd.apple.mpegurl"


class StreamNotFound(RuntimeError):
    """请求的对象不存在。"""


class ManifestNotFound(StreamNotFound):
    """播放列表不存在。"""


class SegmentNotFound(StreamNotFound):
    """切片不存在。"""


def _split_line_ending(line: bytes) -> Tuple[bytes, bytes]:
    content = line.rstrip(b"\r\n")
    return content, line[len(content):]


def rewrite_playlist_line(line: bytes, base_url: str) -> bytes:
    """改写播放列表中的一行

    以切片扩展名结尾的行改写为 {base_url}/{line}，其它行按原字节返回（含换行符）。

    Args:
        line: 原始行，可带换行符
        base_url: 切片地址前缀

    Returns:
        改写后的行
    """
    content, ending = _split_line_ending(line)
    if content.endswith(SEGMENT_EXTENSIONS):
        return base_url.encode("utf-8") + b"/" + content + ending
    return line


def iter_lines(stream: BinaryIO, chunk_size: int = 8192) -> Iterator[bytes]:
    """按块读取字节流并逐行产出（保留换行符，不做解码）

    Args:
        stream: 字节流
        chunk_size: 每次读取的字节数

    Yields:
        字节行
    """
    pending = b""
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        pending += chunk
        lines = pending.splitlines(keepends=True)
        # 最后一段可能是不完整的行
        if lines and not lines[-1].endswith((b"\n", b"\r")):
            pending = lines.pop()
        else:
            pending = b""
        yield from lines
    if pending:
        yield pending


def segment_content_type(segment_name: str) -> str:
    """根据切片文件名获取 MIME 类型"""
    for extension, content_type in SEGMENT_CONTENT_TYPES.items():
        if segment_name.endswith(extension):
            return content_type
    return "application/octet-stream"


class PlaylistStreamer:
    """播放列表 / 切片流式读取器

    无状态，可被多个请求并发使用。
    """

    def __init__(self, storage, buffer_size: int = 8192):
        """初始化

        Args:
            storage: ObjectStorage 实例
            buffer_size: 读取缓冲区大小（字节）
        """
        self.storage = storage
        self.buffer_size = buffer_size

    def stream_manifest(self, media_id: int, file_name: str, base_url: str) -> Iterator[bytes]:
        """获取改写后的播放列表流

        对象不存在时立即抛出异常，而不是在迭代时。

        Args:
            media_id: 媒体 ID
            file_name: 逻辑轨道名
            base_url: 切片地址前缀

        Returns:
            字节块迭代器

        Raises:
            ManifestNotFound: 播放列表不存在
        """
        object_name = get_media_object_prefix(media_id, file_name) + INDEX_FILE_NAME
        stream = self.storage.get(object_name)
        if stream is None:
            logger.error(f"Index file not found: {object_name}")
            raise ManifestNotFound(f"Index file not found: {media_id}/{file_name}")

        return self._rewrite(stream, base_url, object_name)

    def _rewrite(self, stream: BinaryIO, base_url: str, object_name: str) -> Iterator[bytes]:
        try:
            for line in iter_lines(stream, self.buffer_size):
                yield rewrite_playlist_line(line, base_url)
        except Exception:
            logger.exception(f"Error streaming playlist: {object_name}")
            raise
        finally:
            stream.close()

    def stream_segment(self, media_id: int, file_name: str, segment: str) -> Iterator[bytes]:
        """获取切片原始字节流

        Args:
            media_id: 媒体 ID
            file_name: 逻辑轨道名
            segment: 切片文件名

        Returns:
            字节块迭代器

        Raises:
            SegmentNotFound: 切片不存在
        """
        object_name = get_media_object_prefix(media_id, file_name) + segment
        stream = self.storage.get(object_name)
        if stream is None:
            logger.error(f"Segment not found: {object_name}")
            raise SegmentNotFound(f"Segment not found: {media_id}/{file_name}/{segment}")

        return self._copy(stream, object_name)

    def _copy(self, stream: BinaryIO, object_name: str) -> Iterator[bytes]:
        try:
            while True:
                chunk = stream.read(self.buffer_size)
                if not chunk:
                    break
                yield chunk
        except Exception:
            logger.exception(f"Error streaming segment: {object_name}")
            raise
        finally:
            stream.close()
