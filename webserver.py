#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
import sys
import json
import logging
import traceback
from logging.handlers import TimedRotatingFileHandler

# Add current directory to Python path to ensure modules can be imported
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flask import Flask, jsonify
from flask_cors import CORS

from media_db import MediaDatabase
from hlsmedia.object_storage import ObjectStorage
from hlsmedia.transcode import (
    MediaConfig,
    ObjectStorageConfig,
    FFmpegToolchain,
    MediaTrackEncoder,
    ObjectPublisher,
    PlaylistStreamer,
    MediaManager,
)
from hlsmedia.transcode import api as media_api

# Configuration file path
CONFIG_FILE = "config/config.json"
DEFAULT_DB_FILE = "data/media.db"

DEFAULT_CONFIG = {
    "db_file": DEFAULT_DB_FILE,
    "media": {
        "ffmpeg_path": "",
        "scratch_root": "",
        "max_concurrent_tasks": 2,
        "video_segment_duration": 10,
        "audio_segment_duration": 5,
        "audio_sample_rate": 44100,
        "audio_bitrate": "128k",
        "upload_part_size": 10485760,
        "transfer_buffer_size": 8192
    },
    "object_storage": {
        "endpoint": "localhost:9000",
        "access_key": "",
        "secret_key": "",
        "bucket": "stream",
        "secure": False
    }
}


def configure_logging(log_dir='logs'):
    """Configure console and daily rotating file logging"""
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(name)s - %(message)s')

    # 配置较少日志输出的模块
    for module in ['urllib3', 'botocore', 'boto3', 's3transfer', 'werkzeug']:
        logging.getLogger(module).setLevel(logging.WARNING)

    os.makedirs(log_dir, exist_ok=True)

    # 添加按日期滚动的文件处理器
    file_handler = TimedRotatingFileHandler(
        os.path.join(log_dir, 'webserver.log'),
        when='midnight',
        interval=1,
        backupCount=3  # 保留3天日志
    )
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(name)s - %(message)s'))
    file_handler.setLevel(logging.INFO)
    logging.getLogger().addHandler(file_handler)


def load_config(config_file=CONFIG_FILE):
    """Load configuration file, creating it with defaults on first run"""
    config = json.loads(json.dumps(DEFAULT_CONFIG))
    try:
        if os.path.exists(config_file):
            with open(config_file, 'r', encoding='utf-8') as f:
                loaded_config = json.load(f)
            for key, value in loaded_config.items():
                if isinstance(value, dict) and isinstance(config.get(key), dict):
                    config[key].update(value)
                else:
                    config[key] = value
            logging.info(f"Loaded configuration file: {config_file}")
        else:
            # Create config directory if it doesn't exist
            os.makedirs(os.path.dirname(config_file) or '.', exist_ok=True)
            # Save default config
            with open(config_file, 'w', encoding='utf-8') as f:
                json.dump(config, f, ensure_ascii=False, indent=2)
            logging.info(f"Created default configuration file: {config_file}")
    except (OSError, ValueError) as e:
        logging.error(f"Failed to load configuration file: {str(e)}")

    # 环境变量优先
    if os.environ.get("MEDIA_DB_FILE"):
        config["db_file"] = os.environ["MEDIA_DB_FILE"]

    return config


def create_app():
    """Create the Flask application and register media routes"""
    app = Flask(__name__)
    CORS(app)  # Enable CORS, HLS players fetch playlists cross-origin

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle uncaught exceptions"""
        app.logger.error(f"Uncaught exception: {str(e)}")
        app.logger.error(traceback.format_exc())
        return jsonify({"error": "An unexpected error occurred."}), 500

    media_api.register_routes(app)
    return app


def init_services(app_config):
    """Build database, object storage and media manager from configuration

    Returns:
        MediaManager 实例
    """
    media_config = MediaConfig.from_app_config(app_config)
    storage_config = ObjectStorageConfig.from_app_config(app_config)

    db_file = os.path.abspath(app_config.get("db_file") or DEFAULT_DB_FILE)
    database = MediaDatabase(db_file=db_file)
    logging.info(f"Using database file: {db_file}")

    storage = ObjectStorage.from_config(storage_config, part_size=media_config.upload_part_size)
    storage.ensure_bucket()

    manager = MediaManager(
        media_config,
        database,
        MediaTrackEncoder(FFmpegToolchain(media_config)),
        ObjectPublisher(storage),
    )
    recovered = manager.recover_interrupted()
    if recovered:
        logging.warning(f"Removed {recovered} media interrupted by a previous shutdown")

    media_api.init_media_services(manager, PlaylistStreamer(storage, media_config.transfer_buffer_size))
    return manager


def main():
    configure_logging()
    app_config = load_config()
    manager = init_services(app_config)
    app = create_app()
    try:
        app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 8080)), debug=False, threaded=True)
    finally:
        manager.stop(wait=False)


# Start the server
if __name__ == '__main__':
    main()
