"""
FFprobe 媒体类型探测模块

使用 ffprobe 获取源文件包含的流类型（video / audio）。
"""

import logging
from typing import List, Optional, Tuple

from .ffmpeg import run_process
from .models import MediaKind

logger = logging.getLogger(__name__)


class FFprobeRunner:
    """FFprobe 运行器"""

    def __init__(self, ffprobe_path: str = "ffprobe"):
        """初始化 FFprobe 运行器

        Args:
            ffprobe_path: ffprobe 可执行文件路径
        """
        self.ffprobe_path = ffprobe_path

    def build_command(self, source: str) -> List[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-show_entries", "stream=codec_type",
            "-of", "csv=p=0",
            source,
        ]

    def get_stream_types(self, source: str, cwd: Optional[str] = None) -> Tuple[int, List[str]]:
        """获取源文件的流类型列表

        Args:
            source: 源文件路径
            cwd: 进程工作目录

        Returns:
            (退出码, 流类型列表)
        """
        output: List[str] = []
        return_code = run_process(self.build_command(source), cwd=cwd, output=output)
        stream_types = [line.strip() for line in output if line.strip()]
        logger.info(f"Stream types for {source}: {stream_types}")
        return return_code, stream_types


def classify_stream_types(stream_types: List[str]) -> Optional[MediaKind]:
    """根据流类型判断媒体类型

    含视频流即视为视频，否则含音频流视为音频。

    Args:
        stream_types: ffprobe 输出的流类型

    Returns:
        MediaKind，无法识别返回 None
    """
    kinds = set(stream_types)
    if MediaKind.VIDEO.value in kinds:
        return MediaKind.VIDEO
    if MediaKind.AUDIO.value in kinds:
        return MediaKind.AUDIO
    return None
