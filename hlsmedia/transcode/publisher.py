"""
转码产物发布模块

把播放列表和切片上传到对象存储的固定键前缀下，并支持按前缀删除。
"""

import os
import logging
from typing import Optional

from .models import ProcessedTrack

logger = logging.getLogger(__name__)


class PublishFailed(RuntimeError):
    """轨道上传失败（整条轨道视为失败）。"""


def get_media_object_prefix(media_id: int, file_name: Optional[str] = None) -> str:
    """获取媒体对象键前缀

    Args:
        media_id: 媒体 ID
        file_name: 逻辑轨道名，为空时返回整个媒体的前缀

    Returns:
        如 "media/1/" 或 "media/1/video/"
    """
    prefix = f"media/{media_id}/"
    if file_name is not None:
        prefix += f"{file_name}/"
    return prefix


class ObjectPublisher:
    """对象发布器"""

    def __init__(self, storage):
        """初始化发布器

        Args:
            storage: ObjectStorage 实例
        """
        self.storage = storage

    def publish(self, media_id: int, file_name: str, track: ProcessedTrack) -> int:
        """上传一条轨道的播放列表和全部切片

        任何一个对象失败即整体失败，调用方应重试整条轨道。

        Args:
            media_id: 媒体 ID
            file_name: 逻辑轨道名
            track: 编码产物

        Returns:
            上传的对象数量

        Raises:
            PublishFailed: 任何对象上传失败
        """
        prefix = get_media_object_prefix(media_id, file_name)
        logger.info(f"Uploading media track: {prefix}")

        uploaded = 0
        for path in track.files:
            object_name = f"{prefix}{os.path.basename(path)}"
            logger.info(f"Uploading: {self.storage.bucket}:{object_name}")
            try:
                with open(path, "rb") as stream:
                    self.storage.put(object_name, track.content_type, stream, -1)
            except Exception as e:
                raise PublishFailed(f"Failed to upload {object_name}: {e}") from e
            uploaded += 1

        logger.info(f"Uploaded media track: {prefix} ({uploaded} objects)")
        return uploaded

    def unpublish(self, media_id: int, file_name: Optional[str] = None) -> int:
        """删除媒体（或单条轨道）的所有对象

        Args:
            media_id: 媒体 ID
            file_name: 逻辑轨道名，为空时删除整个媒体

        Returns:
            删除的对象数量
        """
        prefix = get_media_object_prefix(media_id, file_name)
        logger.info(f"Deleting media objects: {prefix}")

        deleted = 0
        for key in self.storage.list(prefix):
            self.storage.delete(key)
            deleted += 1

        logger.info(f"Deleted media objects: {prefix} ({deleted} objects)")
        return deleted
