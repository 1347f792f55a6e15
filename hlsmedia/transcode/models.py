"""
媒体数据模型

定义媒体条目、轨道描述和转码产物的数据结构。
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, BinaryIO


class MediaKind(Enum):
    """媒体类型枚举"""
    VIDEO = "video"
    AUDIO = "audio"


@dataclass
class TrackDescriptor:
    """轨道描述（持久化，不含播放地址）"""

    original_name: str  # 上传时的原始文件名
    file_name: str      # 逻辑轨道名，如 "video"、"audio-0"
    media_type: MediaKind

    def __post_init__(self):
        if isinstance(self.media_type, str):
            self.media_type = MediaKind(self.media_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_name": self.original_name,
            "file_name": self.file_name,
            "media_type": self.media_type.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TrackDescriptor':
        return cls(
            original_name=data.get("original_name", ""),
            file_name=data["file_name"],
            media_type=data["media_type"],
        )


@dataclass
class PlayableTrack:
    """可播放轨道（按请求计算，不持久化）"""

    original_name: str
    file_name: str
    media_type: MediaKind
    stream_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_name": self.original_name,
            "file_name": self.file_name,
            "media_type": self.media_type.value,
            "stream_url": self.stream_url,
        }


@dataclass
class MediaItem:
    """媒体条目

    ready 为 False 时处于转码中，不能播放。
    """

    id: int
    name: str
    ready: bool = False
    video_track: Optional[TrackDescriptor] = None
    audio_tracks: List[TrackDescriptor] = field(default_factory=list)

    @property
    def tracks(self) -> List[TrackDescriptor]:
        """所有轨道，视频轨在前"""
        tracks = []
        if self.video_track is not None:
            tracks.append(self.video_track)
        tracks.extend(self.audio_tracks)
        return tracks

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（用于持久化和 API 响应）

        Returns:
            字典表示
        """
        return {
            "id": self.id,
            "name": self.name,
            "ready": self.ready,
            "video_track": self.video_track.to_dict() if self.video_track else None,
            "audio_tracks": [track.to_dict() for track in self.audio_tracks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MediaItem':
        video = data.get("video_track")
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            ready=bool(data.get("ready", False)),
            video_track=TrackDescriptor.from_dict(video) if video else None,
            audio_tracks=[TrackDescriptor.from_dict(t) for t in data.get("audio_tracks") or []],
        )


@dataclass
class PlayableMedia:
    """可播放媒体视图，由 MediaItem 和请求上下文组合而成"""

    id: int
    name: str
    video_track: PlayableTrack
    audio_tracks: List[PlayableTrack] = field(default_factory=list)

    @classmethod
    def from_media(cls, media: MediaItem, stream_base: str) -> 'PlayableMedia':
        """根据请求的流地址前缀构造可播放视图

        Args:
            media: 已就绪的媒体条目
            stream_base: 流地址前缀，如 "http://host:8080/api/stream"

        Returns:
            PlayableMedia 实例
        """
        if not media.ready or media.video_track is None:
            raise ValueError(f"Media {media.id} is not ready for playback")

        def playable(track: TrackDescriptor) -> PlayableTrack:
            return PlayableTrack(
                original_name=track.original_name,
                file_name=track.file_name,
                media_type=track.media_type,
                stream_url=f"{get_stream_uri(stream_base, media.id, track.file_name)}/index.m3u8",
            )

        return cls(
            id=media.id,
            name=media.name,
            video_track=playable(media.video_track),
            audio_tracks=[playable(track) for track in media.audio_tracks],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "ready": True,
            "video_track": self.video_track.to_dict(),
            "audio_tracks": [track.to_dict() for track in self.audio_tracks],
        }


@dataclass
class ProcessedTrack:
    """编码器输出：播放列表和切片文件（仅在单个后台任务内存在）"""

    content_type: str
    index_file: str
    chunks: List[str] = field(default_factory=list)

    @property
    def files(self) -> List[str]:
        """播放列表在前，切片在后"""
        return [self.index_file] + list(self.chunks)


@dataclass
class SourceUpload:
    """上传的源文件：原始文件名和可读的字节流"""

    file_name: Optional[str]
    stream: BinaryIO


def get_stream_uri(stream_base: str, media_id: int, file_name: str) -> str:
    """获取轨道的流地址（不含 index.m3u8）

    Args:
        stream_base: 流地址前缀
        media_id: 媒体 ID
        file_name: 逻辑轨道名

    Returns:
        流地址
    """
    return f"{stream_base.rstrip('/')}/{media_id}/{file_name}"
