"""
转码配置模块

定义转码、对象存储相关的配置参数和默认值。
"""

import os
import tempfile
from typing import Optional
from dataclasses import dataclass


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class MediaConfig:
    """转码配置

    从全局配置的 media 段读取转码相关参数，提供默认值。
    """

    # 编码器位置（为空时依次检查 FFMPEG_PATH 环境变量和 PATH）
    ffmpeg_path: str = ""

    # 临时工作目录根路径，每个媒体一个子目录
    scratch_root: str = os.path.join(tempfile.gettempdir(), "media-processing")

    # 视频切片参数
    video_codec: str = "h264"
    video_segment_duration: int = 10

    # 音频切片参数
    audio_codec: str = "aac"
    audio_sample_rate: int = 44100
    audio_bitrate: str = "128k"
    audio_segment_duration: int = 5

    # 并发限制
    max_concurrent_tasks: int = 2

    # 上传分片上限（字节），未知长度的流按此大小分片上传
    upload_part_size: int = 10 * 1024 * 1024

    # 播放时读取对象的缓冲区大小（字节）
    transfer_buffer_size: int = 8192

    @classmethod
    def from_app_config(cls, app_config: dict) -> 'MediaConfig':
        """从应用配置创建 MediaConfig

        Args:
            app_config: 全局配置字典

        Returns:
            MediaConfig 实例
        """
        media_config = app_config.get("media", {}) or {}

        config = cls()

        if media_config.get("ffmpeg_path"):
            config.ffmpeg_path = media_config["ffmpeg_path"]
        if media_config.get("scratch_root"):
            config.scratch_root = media_config["scratch_root"]

        if "video_codec" in media_config:
            config.video_codec = media_config["video_codec"] or "h264"
        if "video_segment_duration" in media_config:
            config.video_segment_duration = int(media_config["video_segment_duration"] or 10)

        if "audio_codec" in media_config:
            config.audio_codec = media_config["audio_codec"] or "aac"
        if "audio_sample_rate" in media_config:
            config.audio_sample_rate = int(media_config["audio_sample_rate"] or 44100)
        if "audio_bitrate" in media_config:
            config.audio_bitrate = media_config["audio_bitrate"] or "128k"
        if "audio_segment_duration" in media_config:
            config.audio_segment_duration = int(media_config["audio_segment_duration"] or 5)

        if "max_concurrent_tasks" in media_config:
            config.max_concurrent_tasks = max(1, int(media_config["max_concurrent_tasks"] or 2))

        if "upload_part_size" in media_config:
            config.upload_part_size = int(media_config["upload_part_size"] or 10 * 1024 * 1024)
        if "transfer_buffer_size" in media_config:
            config.transfer_buffer_size = int(media_config["transfer_buffer_size"] or 8192)

        return config

    def get_work_dir(self, media_id: int) -> str:
        """获取媒体的临时工作目录

        Args:
            media_id: 媒体 ID

        Returns:
            工作目录路径
        """
        return os.path.join(self.scratch_root, str(media_id))


@dataclass
class ObjectStorageConfig:
    """对象存储配置（MinIO / S3 兼容）"""

    endpoint: str = "localhost:9000"
    access_key: str = ""
    secret_key: str = ""
    bucket: str = "stream"
    region: str = "us-east-1"
    secure: bool = False

    @classmethod
    def from_app_config(cls, app_config: dict) -> 'ObjectStorageConfig':
        """从应用配置创建 ObjectStorageConfig

        环境变量优先于配置文件。

        Args:
            app_config: 全局配置字典

        Returns:
            ObjectStorageConfig 实例
        """
        storage_config = app_config.get("object_storage", {}) or {}

        config = cls()
        config.endpoint = os.environ.get("MINIO_ENDPOINT") or storage_config.get("endpoint") or config.endpoint
        config.access_key = os.environ.get("MINIO_ACCESS_KEY") or storage_config.get("access_key") or ""
        config.secret_key = os.environ.get("MINIO_SECRET_KEY") or storage_config.get("secret_key") or ""
        config.bucket = os.environ.get("MINIO_BUCKET") or storage_config.get("bucket") or config.bucket
        config.region = storage_config.get("region") or config.region
        config.secure = _env_flag(os.environ.get("MINIO_SECURE"), bool(storage_config.get("secure", False)))

        return config

    @property
    def endpoint_url(self) -> str:
        """带协议的访问地址"""
        if "://" in self.endpoint:
            return self.endpoint
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{self.endpoint}"
