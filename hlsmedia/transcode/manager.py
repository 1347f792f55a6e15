"""
媒体转码管理器

负责媒体条目的生命周期管理：
- 创建媒体并暂存上传文件
- 在有界线程池中执行后台转码和发布
- 成功后标记就绪，失败时删除记录
- 删除媒体并回收对象存储中的文件
"""

import os
import shutil
import tempfile
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Union

from .config import MediaConfig
from .encoder import MediaTrackEncoder
from .models import (
    MediaItem,
    MediaKind,
    PlayableMedia,
    SourceUpload,
    TrackDescriptor,
)
from .publisher import ObjectPublisher

logger = logging.getLogger(__name__)


class MediaServiceError(RuntimeError):
    """媒体服务错误的基类。"""


class MediaCreationFailed(MediaServiceError):
    """创建媒体（分配 ID、暂存文件）失败，已完成清理。"""


class MediaNotFound(MediaServiceError):
    """媒体不存在。"""


class MediaManager:
    """媒体转码管理器

    同一媒体 ID 只会有一个后台任务：ID 在派发任务前原子分配且从不复用。
    """

    def __init__(
        self,
        config: MediaConfig,
        database,
        encoder: MediaTrackEncoder,
        publisher: ObjectPublisher,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        """初始化管理器

        Args:
            config: 转码配置
            database: MediaDatabase 实例
            encoder: 轨道编码器
            publisher: 对象发布器
            executor: 后台线程池，为空时按 max_concurrent_tasks 创建
        """
        self.config = config
        self.database = database
        self.encoder = encoder
        self.publisher = publisher
        self.executor = executor or ThreadPoolExecutor(
            max_workers=config.max_concurrent_tasks,
            thread_name_prefix="MediaTranscode"
        )

    def stop(self, wait: bool = True):
        """停止管理器，等待正在执行的任务结束"""
        self.executor.shutdown(wait=wait)

    def list_media(self) -> List[MediaItem]:
        return self.database.find_all()

    def get_media(self, media_id: int) -> Optional[MediaItem]:
        """获取媒体

        Args:
            media_id: 媒体 ID

        Returns:
            MediaItem，不存在返回 None
        """
        return self.database.find_by_id(media_id)

    def require_media(self, media_id: int) -> MediaItem:
        media = self.get_media(media_id)
        if media is None:
            raise MediaNotFound(f"Media not found: {media_id}")
        return media

    def get_playable_media(self, media_id: int, stream_base: str) -> Optional[Union[MediaItem, PlayableMedia]]:
        """获取可播放视图

        Args:
            media_id: 媒体 ID
            stream_base: 流地址前缀

        Returns:
            不存在返回 None，未就绪返回原始记录，否则返回 PlayableMedia
        """
        media = self.get_media(media_id)
        if media is None or not media.ready:
            return media
        return PlayableMedia.from_media(media, stream_base)

    def create_media(
        self,
        name: str,
        video: SourceUpload,
        audios: List[SourceUpload]
    ) -> MediaItem:
        """创建媒体并派发后台转码

        立即返回未就绪的记录，不等待转码完成。

        Args:
            name: 显示名称
            video: 视频源文件
            audios: 音频源文件列表

        Returns:
            未就绪的 MediaItem

        Raises:
            MediaCreationFailed: 分配或暂存失败（记录和工作目录已清理）
        """
        logger.info(f"Creating media: {name}")

        media_id: Optional[int] = None
        work_dir: Optional[str] = None

        try:
            media_id = self.database.next_id()

            video_track = TrackDescriptor(self._require_file_name(video), "video", MediaKind.VIDEO)
            audio_tracks = [
                TrackDescriptor(self._require_file_name(audio), f"audio-{index}", MediaKind.AUDIO)
                for index, audio in enumerate(audios)
            ]

            media = self.database.save(MediaItem(media_id, name, False, video_track, audio_tracks))

            work_dir = self.config.get_work_dir(media.id)
            if os.path.exists(work_dir):
                logger.error(f"Work directory for new media already exists: {work_dir}")
                shutil.rmtree(work_dir)
            os.makedirs(work_dir)

            tracks = media.tracks
            sources = [video] + list(audios)
            source_files = [
                self._stage_source(source, track, work_dir)
                for source, track in zip(sources, tracks)
            ]

            self.executor.submit(self._run_job, media, work_dir, tracks, source_files)
            return media

        except Exception as e:
            logger.error(f"Error creating media: {name}", exc_info=True)
            if media_id is not None:
                self.database.delete_by_id(media_id)
            if work_dir is not None:
                shutil.rmtree(work_dir, ignore_errors=True)
            raise MediaCreationFailed(f"Error occurred during creating media: {name}") from e

    def _require_file_name(self, source: SourceUpload) -> str:
        if not source.file_name:
            raise ValueError("Uploaded file has no file name")
        return source.file_name

    def _stage_source(self, source: SourceUpload, track: TrackDescriptor, work_dir: str) -> str:
        """把上传的字节流写入工作目录

        Returns:
            暂存文件路径
        """
        fd, path = tempfile.mkstemp(prefix=f"{track.file_name}-", suffix=".tmp", dir=work_dir)
        with os.fdopen(fd, "wb") as output:
            shutil.copyfileobj(source.stream, output)
        return path

    def _run_job(
        self,
        media: MediaItem,
        work_dir: str,
        tracks: List[TrackDescriptor],
        source_files: List[str]
    ):
        """后台任务：逐条轨道编码并发布，全部成功后标记就绪

        任何失败都会删除媒体记录；工作目录总会被删除。
        """
        try:
            self._process_media(media, work_dir, tracks, source_files)
        except Exception:
            logger.error(f"Error processing media: {media.id}", exc_info=True)
            try:
                self.database.delete_by_id(media.id)
            except Exception:
                # 记录保持未就绪，下次启动时由 recover_interrupted() 回收
                logger.error(f"Failed to delete media record: {media.id}", exc_info=True)
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

    def _process_media(
        self,
        media: MediaItem,
        work_dir: str,
        tracks: List[TrackDescriptor],
        source_files: List[str]
    ):
        for track, source_file in zip(tracks, source_files):
            stem = os.path.splitext(os.path.basename(source_file))[0]
            target_dir = os.path.join(work_dir, f"{stem}_processed")
            processed = self.encoder.execute(source_file, target_dir)
            self.publisher.publish(media.id, track.file_name, processed)

        if self.database.mark_ready(media.id):
            logger.info(f"Processed media: {media.id}")
        else:
            logger.warning(f"Media {media.id} was deleted during processing, published objects left behind")

    def delete_media(self, media_id: int) -> int:
        """删除媒体

        先删除记录，使播放端不再看到它，然后尽力删除对象。

        Args:
            media_id: 媒体 ID

        Returns:
            删除的对象数量

        Raises:
            MediaNotFound: 媒体不存在
        """
        logger.info(f"Deleting media: {media_id}")
        if not self.database.delete_by_id(media_id):
            raise MediaNotFound(f"Media not found: {media_id}")

        try:
            return self.publisher.unpublish(media_id)
        except Exception:
            logger.error(f"Failed to delete objects of media {media_id}", exc_info=True)
            return 0

    def recover_interrupted(self) -> int:
        """回收上次进程中断时遗留的未就绪媒体

        启动时调用：此时不可能有任务在运行，所有未就绪记录都已失效。

        Returns:
            回收的媒体数量
        """
        recovered = 0
        for media in self.database.find_pending():
            logger.warning(f"Removing interrupted media: {media.id}")
            self.database.delete_by_id(media.id)
            try:
                self.publisher.unpublish(media.id)
            except Exception:
                logger.error(f"Failed to delete objects of media {media.id}", exc_info=True)
            recovered += 1

        if os.path.isdir(self.config.scratch_root):
            for entry in os.listdir(self.config.scratch_root):
                shutil.rmtree(os.path.join(self.config.scratch_root, entry), ignore_errors=True)

        return recovered
