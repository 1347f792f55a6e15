"""
媒体上传与 HLS 播放 API 端点

上传后立即返回未就绪的媒体，后台完成转码；播放时从对象存储流式输出。
"""

import logging

from flask import jsonify, request, Response, stream_with_context

from .manager import MediaCreationFailed, MediaNotFound
from .models import PlayableMedia, SourceUpload, get_stream_uri
from .playlist import (
    PLAYLIST_CONTENT_TYPE,
    ManifestNotFound,
    SegmentNotFound,
    segment_content_type,
)
from .ffmpeg import INDEX_FILE_NAME

logger = logging.getLogger(__name__)

STREAM_PATH = "/api/stream"

# 全局实例（在 webserver.py 中初始化）
MEDIA_MANAGER = None
PLAYLIST_STREAMER = None


def init_media_services(manager, streamer):
    """初始化媒体管理器和播放列表读取器

    Args:
        manager: MediaManager 实例
        streamer: PlaylistStreamer 实例
    """
    global MEDIA_MANAGER, PLAYLIST_STREAMER
    MEDIA_MANAGER = manager
    PLAYLIST_STREAMER = streamer
    logger.info("Media services initialized")


def get_stream_base() -> str:
    """根据当前请求获取流地址前缀，如 http://host:8080/api/stream"""
    return request.host_url.rstrip("/") + STREAM_PATH


def _to_upload(file_storage) -> SourceUpload:
    return SourceUpload(file_name=file_storage.filename, stream=file_storage.stream)


def register_routes(app):
    """注册媒体 API 路由

    Args:
        app: Flask 应用实例
    """

    @app.route('/media/', methods=['GET'])
    def media_list():
        """获取媒体列表"""
        if MEDIA_MANAGER is None:
            return jsonify({"error": "Media manager not initialized"}), 500

        logger.info("Getting media list")
        media_list = MEDIA_MANAGER.list_media()
        return jsonify({
            "success": True,
            "media": [media.to_dict() for media in media_list],
        })

    @app.route('/media/<int:media_id>', methods=['GET'])
    def media_player(media_id):
        """获取媒体播放信息

        未就绪时返回 202 和 processing 状态。

        Args:
            media_id: 媒体 ID
        """
        if MEDIA_MANAGER is None:
            return jsonify({"error": "Media manager not initialized"}), 500

        logger.info(f"Getting media player for mediaId: {media_id}")
        media = MEDIA_MANAGER.get_playable_media(media_id, get_stream_base())
        if media is None:
            return jsonify({"error": "Media not found"}), 404

        if not isinstance(media, PlayableMedia):
            return jsonify({"success": True, "status": "processing", "media": media.to_dict()}), 202

        return jsonify({"success": True, "status": "ready", "media": media.to_dict()})

    @app.route('/media/', methods=['POST'])
    def upload_media():
        """上传媒体

        表单字段：mediaTitle、videoFile、audioFiles（可多个）
        """
        if MEDIA_MANAGER is None:
            return jsonify({"error": "Media manager not initialized"}), 500

        title = (request.form.get('mediaTitle') or '').strip()
        video_file = request.files.get('videoFile')
        audio_files = [f for f in request.files.getlist('audioFiles') if f and f.filename]

        if not title:
            return jsonify({"error": "mediaTitle is required"}), 400
        if video_file is None or not video_file.filename:
            return jsonify({"error": "videoFile is required"}), 400

        logger.info(f"Uploading media: {title}")
        try:
            media = MEDIA_MANAGER.create_media(
                title,
                _to_upload(video_file),
                [_to_upload(f) for f in audio_files],
            )
        except MediaCreationFailed as e:
            return jsonify({"error": str(e)}), 500

        response = jsonify({"success": True, "status": "processing", "media": media.to_dict()})
        response.status_code = 202
        response.headers['Location'] = f"/media/{media.id}"
        return response

    @app.route('/media/<int:media_id>/delete', methods=['POST'])
    def delete_media(media_id):
        """删除媒体"""
        if MEDIA_MANAGER is None:
            return jsonify({"error": "Media manager not initialized"}), 500

        logger.info(f"Deleting media: {media_id}")
        try:
            deleted = MEDIA_MANAGER.delete_media(media_id)
        except MediaNotFound:
            return jsonify({"error": "Media not found"}), 404

        return jsonify({"success": True, "message": "Media deleted", "deleted_objects": deleted})

    @app.route(f'{STREAM_PATH}/<int:media_id>/<file_name>/{INDEX_FILE_NAME}', methods=['GET'])
    def stream_index(media_id, file_name):
        """获取改写后的 m3u8 播放列表

        Args:
            media_id: 媒体 ID
            file_name: 逻辑轨道名
        """
        if PLAYLIST_STREAMER is None:
            return "Playlist streamer not initialized", 500

        logger.info(f"Getting index mediaId: {media_id}, fileName: {file_name}")
        base_url = get_stream_uri(get_stream_base(), media_id, file_name)
        try:
            stream = PLAYLIST_STREAMER.stream_manifest(media_id, file_name, base_url)
        except ManifestNotFound as e:
            return str(e), 404

        response = Response(stream_with_context(stream), mimetype=PLAYLIST_CONTENT_TYPE)
        response.headers['Content-Disposition'] = f"attachment; filename={INDEX_FILE_NAME}"
        return response

    @app.route(f'{STREAM_PATH}/<int:media_id>/<file_name>/<segment>', methods=['GET'])
    def stream_segment(media_id, file_name, segment):
        """获取切片文件

        Args:
            media_id: 媒体 ID
            file_name: 逻辑轨道名
            segment: 切片文件名
        """
        if PLAYLIST_STREAMER is None:
            return "Playlist streamer not initialized", 500

        logger.debug(f"Getting segment: {media_id}/{file_name}/{segment}")
        try:
            stream = PLAYLIST_STREAMER.stream_segment(media_id, file_name, segment)
        except SegmentNotFound as e:
            return str(e), 404

        response = Response(stream_with_context(stream), mimetype=segment_content_type(segment))
        response.headers['Content-Disposition'] = f"attachment; filename={segment}"
        return response

