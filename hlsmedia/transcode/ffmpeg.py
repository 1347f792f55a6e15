"""
FFmpeg 进程管理模块

负责构建 FFmpeg 切片命令并执行外部进程。
"""

import subprocess
import threading
import logging
from typing import List, Optional, IO

from .config import MediaConfig

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "index.m3u8"
SEGMENT_PREFIX = "segment-"


def _drain_stream(stream: IO[str], label: str, output: Optional[List[str]]) -> None:
    """逐行读取进程输出并转发到日志

    Args:
        stream: 进程的 stdout 或 stderr
        label: 日志标签
        output: 需要保存输出时传入的列表
    """
    try:
        for line in stream:
            line = line.rstrip("\r\n")
            if not line:
                continue
            logger.info(f"[{label}] {line}")
            if output is not None:
                output.append(line)
    finally:
        stream.close()


def run_process(
    command: List[str],
    cwd: Optional[str] = None,
    output: Optional[List[str]] = None
) -> int:
    """执行外部进程并等待其退出

    stdout 和 stderr 分别由独立线程读取，避免管道写满导致进程阻塞。

    Args:
        command: 命令列表
        cwd: 工作目录
        output: 需要收集 stdout 时传入的列表

    Returns:
        进程退出码
    """
    process = subprocess.Popen(
        command,
        cwd=cwd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
    )
    logger.info(f"Started process {command[0]} with PID {process.pid}")

    readers = [
        threading.Thread(
            target=_drain_stream,
            args=(process.stdout, "stdout", output),
            daemon=True,
            name=f"ProcessStdout-{process.pid}",
        ),
        threading.Thread(
            target=_drain_stream,
            args=(process.stderr, "stderr", None),
            daemon=True,
            name=f"ProcessStderr-{process.pid}",
        ),
    ]
    for reader in readers:
        reader.start()

    try:
        return_code = process.wait()
    finally:
        for reader in readers:
            reader.join()

    logger.info(f"Process {process.pid} exited with code {return_code}")
    return return_code


class FFmpegRunner:
    """FFmpeg 进程管理器

    构建 HLS / 分段命令并执行转码进程。
    """

    def __init__(self, config: MediaConfig, ffmpeg_path: str = "ffmpeg"):
        """初始化 FFmpeg 运行器

        Args:
            config: 转码配置
            ffmpeg_path: ffmpeg 可执行文件路径
        """
        self.config = config
        self.ffmpeg_path = ffmpeg_path

    def build_hls_command(self, source: str) -> List[str]:
        """构建视频 HLS 切片命令

        输出文件相对于进程工作目录。

        Args:
            source: 源文件路径

        Returns:
            FFmpeg 命令列表
        """
        return [
            self.ffmpeg_path,
            "-i", source,
            "-c:v", self.config.video_codec,
            "-hls_time", str(self.config.video_segment_duration),
            # 0 表示保留所有切片
            "-hls_list_size", "0",
            "-hls_segment_filename", f"{SEGMENT_PREFIX}%03d.ts",
            INDEX_FILE_NAME,
        ]

    def build_segment_command(self, source: str) -> List[str]:
        """构建音频分段命令

        Args:
            source: 源文件路径

        Returns:
            FFmpeg 命令列表
        """
        return [
            self.ffmpeg_path,
            "-i", source,
            "-f", "segment",
            "-ar", str(self.config.audio_sample_rate),
            "-c:a", self.config.audio_codec,
            "-b:a", self.config.audio_bitrate,
            "-segment_time", str(self.config.audio_segment_duration),
            "-segment_list", INDEX_FILE_NAME,
            "-segment_format", "aac", f"{SEGMENT_PREFIX}%03d.aac",
            "-segment_time_delta", "0",
        ]

    def run(self, command: List[str], output_dir: str) -> int:
        """执行 FFmpeg 命令

        Args:
            command: FFmpeg 命令
            output_dir: 输出目录（作为进程工作目录）

        Returns:
            进程退出码
        """
        logger.info(f"Running FFmpeg: {self.get_command_line_string(command)}")
        return run_process(command, cwd=output_dir)

    def get_command_line_string(self, command: List[str]) -> str:
        """获取命令行字符串（用于日志记录）

        Args:
            command: FFmpeg 命令列表

        Returns:
            命令行字符串
        """
        return " ".join(command)
