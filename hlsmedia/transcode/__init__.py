"""
媒体转码与 HLS 播放模块

上传的音视频在后台切片为 HLS，发布到对象存储，并通过改写播放列表的端点播放。

核心特性：
- 有界线程池执行后台转码，上传请求立即返回
- 媒体 ID 原子分配、从不复用，同一媒体最多一个转码任务
- 任何失败都删除媒体记录，工作目录总会被清理
- 播放列表逐行流式改写，切片原样透传
"""

from .config import MediaConfig, ObjectStorageConfig
from .models import MediaItem, MediaKind, TrackDescriptor, PlayableMedia, ProcessedTrack, SourceUpload
from .encoder import (
    FFmpegToolchain,
    MediaTrackEncoder,
    EncoderError,
    EncoderNotFound,
    SourceMissing,
    UnsupportedMediaKind,
    EncodeFailed,
    EncodeIncomplete,
)
from .publisher import ObjectPublisher, PublishFailed
from .playlist import PlaylistStreamer, ManifestNotFound, SegmentNotFound
from .manager import MediaManager, MediaCreationFailed, MediaNotFound

__all__ = [
    'MediaConfig',
    'ObjectStorageConfig',
    'MediaItem',
    'MediaKind',
    'TrackDescriptor',
    'PlayableMedia',
    'ProcessedTrack',
    'SourceUpload',
    'FFmpegToolchain',
    'MediaTrackEncoder',
    'EncoderError',
    'EncoderNotFound',
    'SourceMissing',
    'UnsupportedMediaKind',
    'EncodeFailed',
    'EncodeIncomplete',
    'ObjectPublisher',
    'PublishFailed',
    'PlaylistStreamer',
    'ManifestNotFound',
    'SegmentNotFound',
    'MediaManager',
    'MediaCreationFailed',
    'MediaNotFound',
]
