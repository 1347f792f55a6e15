"""pytest 配置及公共 fixture."""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from media_db import MediaDatabase
from hlsmedia.transcode.config import MediaConfig
from hlsmedia.transcode.encoder import MediaTrackEncoder
from hlsmedia.transcode.manager import MediaManager
from hlsmedia.transcode.publisher import ObjectPublisher

from tests.fakes import FakeObjectStorage, FakeToolchain


@pytest.fixture
def media_config(tmp_path) -> MediaConfig:
    """使用临时工作目录的配置."""
    config = MediaConfig()
    config.scratch_root = str(tmp_path / "media-processing")
    config.max_concurrent_tasks = 2
    return config


@pytest.fixture
def database(tmp_path) -> MediaDatabase:
    """临时 sqlite 数据库."""
    db = MediaDatabase(db_file=str(tmp_path / "media.db"))
    yield db
    db.close()


@pytest.fixture
def storage() -> FakeObjectStorage:
    return FakeObjectStorage()


@pytest.fixture
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def manager(media_config, database, storage, toolchain) -> MediaManager:
    """使用假编码器和内存存储的管理器."""
    mgr = MediaManager(
        media_config,
        database,
        MediaTrackEncoder(toolchain),
        ObjectPublisher(storage),
    )
    yield mgr
    mgr.stop(wait=True)
