"""
轨道编码模块

定位 FFmpeg、探测源文件类型、执行切片并校验输出。
"""

import os
import re
import sys
import logging
from typing import List, Optional

from .config import MediaConfig
from .ffmpeg import FFmpegRunner, INDEX_FILE_NAME
from .ffprobe import FFprobeRunner, classify_stream_types
from .models import MediaKind, ProcessedTrack

logger = logging.getLogger(__name__)

__all__ = [
    "EncoderError",
    "EncoderNotFound",
    "SourceMissing",
    "UnsupportedMediaKind",
    "EncodeFailed",
    "EncodeIncomplete",
    "FFmpegToolchain",
    "MediaTrackEncoder",
    "CONTENT_TYPES",
]


# ============================================================================
# 异常定义
# ============================================================================


class EncoderError(RuntimeError):
    """编码失败的基类。"""


class EncoderNotFound(EncoderError):
    """找不到 FFmpeg 可执行文件。"""


class SourceMissing(EncoderError):
    """源文件不存在。"""


class UnsupportedMediaKind(EncoderError):
    """源文件既不是视频也不是音频。"""


class EncodeFailed(EncoderError):
    """FFmpeg / ffprobe 进程以非零退出码结束。"""


class EncodeIncomplete(EncoderError):
    """进程成功退出但播放列表或切片缺失。"""


# ============================================================================
# 常量
# ============================================================================

CONTENT_TYPES = {
    MediaKind.VIDEO: "video/vnd.apple.mpegurl",
    MediaKind.AUDIO: "audio/vnd.apple.mpegurl",
}

CHUNK_PATTERN = re.compile(r"^segment-\d+\.(ts|aac)$")


def _executable_name(name: str) -> str:
    return name + ".exe" if sys.platform.startswith("win") else name


class FFmpegToolchain:
    """FFmpeg / ffprobe 调用能力

    locate() 查找可执行文件目录，probe() 探测流类型，encode() 执行切片。
    测试中可替换为假实现。
    """

    def __init__(self, config: MediaConfig):
        self.config = config
        self._ffmpeg_root: Optional[str] = None

    def _candidate_dirs(self) -> List[str]:
        candidates = [
            self.config.ffmpeg_path,
            os.environ.get("FFMPEG_PATH", ""),
        ]
        candidates.extend(p.strip() for p in os.environ.get("PATH", "").split(os.pathsep))
        return [c for c in candidates if c]

    def locate(self) -> str:
        """查找包含 ffmpeg 和 ffprobe 的目录

        依次检查配置路径、FFMPEG_PATH 环境变量、PATH 中的每个目录，
        目录中需同时存在 ffmpeg 和 ffprobe。

        Returns:
            ffmpeg 所在目录

        Raises:
            EncoderNotFound: 所有位置都找不到
        """
        if self._ffmpeg_root is not None:
            return self._ffmpeg_root

        executables = [_executable_name("ffmpeg"), _executable_name("ffprobe")]
        for directory in self._candidate_dirs():
            if all(os.path.isfile(os.path.join(directory, name)) for name in executables):
                self._ffmpeg_root = directory
                logger.info(f"Using FFmpeg from {directory}")
                return directory

        raise EncoderNotFound("FFmpeg and FFprobe not found")

    def probe(self, source: str, cwd: Optional[str] = None) -> MediaKind:
        """探测源文件的媒体类型

        Args:
            source: 源文件路径
            cwd: 进程工作目录

        Returns:
            MediaKind

        Raises:
            EncodeFailed: ffprobe 无法启动或退出码非零
            UnsupportedMediaKind: 无法识别的类型
        """
        root = self.locate()
        runner = FFprobeRunner(os.path.join(root, _executable_name("ffprobe")))
        try:
            return_code, stream_types = runner.get_stream_types(source, cwd=cwd)
        except OSError as e:
            # 可执行文件可能已被移除，下次重新查找
            self._ffmpeg_root = None
            raise EncodeFailed(f"Failed to start FFprobe: {e}") from e
        if return_code != 0:
            raise EncodeFailed(f"FFprobe process failed with exit code {return_code}")

        kind = classify_stream_types(stream_types)
        if kind is None:
            raise UnsupportedMediaKind(f"Unsupported media type: {','.join(stream_types) or '<empty>'}")
        return kind

    def encode(self, source: str, kind: MediaKind, target_dir: str) -> int:
        """执行切片

        Args:
            source: 源文件路径
            kind: 媒体类型
            target_dir: 输出目录

        Returns:
            FFmpeg 退出码

        Raises:
            EncodeFailed: 进程无法启动
        """
        root = self.locate()
        runner = FFmpegRunner(self.config, os.path.join(root, _executable_name("ffmpeg")))
        if kind == MediaKind.VIDEO:
            command = runner.build_hls_command(source)
        else:
            command = runner.build_segment_command(source)
        try:
            return runner.run(command, target_dir)
        except OSError as e:
            self._ffmpeg_root = None
            raise EncodeFailed(f"Failed to start FFmpeg: {e}") from e


class MediaTrackEncoder:
    """单个轨道的编码任务"""

    def __init__(self, toolchain: FFmpegToolchain):
        self.toolchain = toolchain

    def execute(self, source: str, target_dir: str) -> ProcessedTrack:
        """编码源文件为 HLS 播放列表和切片

        Args:
            source: 源文件路径
            target_dir: 输出目录，不存在时创建

        Returns:
            ProcessedTrack

        Raises:
            EncoderError: 任何一步失败
        """
        self.toolchain.locate()

        if not os.path.exists(source):
            raise SourceMissing(f"Source file not found: {source}")

        os.makedirs(target_dir, exist_ok=True)

        kind = self.toolchain.probe(source, cwd=target_dir)
        logger.info(f"Content type of {os.path.basename(source)}: {kind.value}")

        exit_code = self.toolchain.encode(source, kind, target_dir)
        if exit_code != 0:
            logger.error(f"FFmpeg process exited with code {exit_code}")
            raise EncodeFailed(f"FFmpeg process failed with exit code {exit_code}")

        index_file = os.path.join(target_dir, INDEX_FILE_NAME)
        if not os.path.isfile(index_file):
            raise EncodeIncomplete(f"Target file not found: {index_file}")

        # 播放顺序以播放列表为准，这里只按文件名排序
        chunks = [
            os.path.join(target_dir, name)
            for name in sorted(os.listdir(target_dir))
            if CHUNK_PATTERN.match(name)
        ]
        if not chunks:
            raise EncodeIncomplete(f"No chunk files found in {target_dir}")

        return ProcessedTrack(CONTENT_TYPES[kind], index_file, chunks)
