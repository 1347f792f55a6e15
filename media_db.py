import os
import json
import sqlite3
import time
import threading
import logging
from typing import List, Optional

from hlsmedia.transcode.models import MediaItem

logger = logging.getLogger(__name__)


class MediaDatabase:
    """媒体元数据库，按媒体 ID 存取 MediaItem"""

    def __init__(self, db_file="data/media.db"):
        """初始化数据库连接"""
        self.db_path = db_file
        self.local = threading.local()  # 使用线程本地存储
        self._id_lock = threading.Lock()
        logger.info(f"Initializing MediaDatabase with database file: {self.db_path}")
        self.connect()
        self.create_tables()

    def connect(self):
        """连接到数据库，每个线程使用独立的连接"""
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        if not hasattr(self.local, 'conn') or self.local.conn is None:
            # isolation_level=None: 事务由 BEGIN / COMMIT 显式控制
            self.local.conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
            self.local.conn.row_factory = sqlite3.Row  # 使查询结果可以通过列名访问

    def close(self):
        """关闭当前线程的数据库连接"""
        if hasattr(self.local, 'conn') and self.local.conn:
            self.local.conn.close()
            self.local.conn = None

    def ensure_connection(self):
        """确保当前线程有可用的数据库连接"""
        if not hasattr(self.local, 'conn') or self.local.conn is None:
            self.connect()
        return self.local.conn

    def create_tables(self):
        """创建必要的数据表"""
        conn = self.ensure_connection()

        # 媒体表，轨道信息以 JSON 保存
        conn.execute('''
        CREATE TABLE IF NOT EXISTS media (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            ready INTEGER NOT NULL DEFAULT 0,
            data TEXT NOT NULL,
            created_at INTEGER,
            updated_at INTEGER
        )
        ''')

        # ID 序列表，只增不减，删除的 ID 不会被复用
        conn.execute('''
        CREATE TABLE IF NOT EXISTS media_sequence (
            name TEXT PRIMARY KEY,
            value INTEGER NOT NULL
        )
        ''')
        conn.execute("INSERT OR IGNORE INTO media_sequence (name, value) VALUES ('media', 0)")

    def next_id(self) -> int:
        """原子地分配下一个媒体 ID"""
        conn = self.ensure_connection()
        with self._id_lock:
            conn.execute("BEGIN IMMEDIATE")
            try:
                conn.execute("UPDATE media_sequence SET value = value + 1 WHERE name = 'media'")
                row = conn.execute("SELECT value FROM media_sequence WHERE name = 'media'").fetchone()
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
        return int(row["value"])

    def save(self, media: MediaItem) -> MediaItem:
        """保存媒体信息（插入或覆盖）"""
        conn = self.ensure_connection()
        now = int(time.time())
        data_json = json.dumps(media.to_dict(), ensure_ascii=False)
        conn.execute('''
        INSERT INTO media (id, name, ready, data, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            ready = excluded.ready,
            data = excluded.data,
            updated_at = excluded.updated_at
        ''', (media.id, media.name, int(media.ready), data_json, now, now))
        return media

    def mark_ready(self, media_id: int) -> bool:
        """把已存在的媒体标记为就绪

        记录已被删除时不会重新创建。

        Returns:
            是否更新了记录
        """
        conn = self.ensure_connection()
        row = conn.execute('SELECT data FROM media WHERE id = ?', (media_id,)).fetchone()
        if row is None:
            return False
        data = json.loads(row["data"])
        data["ready"] = True
        cursor = conn.execute(
            'UPDATE media SET ready = 1, data = ?, updated_at = ? WHERE id = ?',
            (json.dumps(data, ensure_ascii=False), int(time.time()), media_id)
        )
        return cursor.rowcount > 0

    def _row_to_media(self, row) -> MediaItem:
        media = MediaItem.from_dict(json.loads(row["data"]))
        media.ready = bool(row["ready"])
        return media

    def find_by_id(self, media_id: int) -> Optional[MediaItem]:
        """按 ID 获取媒体，不存在返回 None"""
        conn = self.ensure_connection()
        row = conn.execute('SELECT ready, data FROM media WHERE id = ?', (media_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_media(row)

    def find_all(self) -> List[MediaItem]:
        """获取所有媒体，按 ID 排序"""
        conn = self.ensure_connection()
        rows = conn.execute('SELECT ready, data FROM media ORDER BY id').fetchall()
        return [self._row_to_media(row) for row in rows]

    def find_pending(self) -> List[MediaItem]:
        """获取所有未就绪的媒体"""
        conn = self.ensure_connection()
        rows = conn.execute('SELECT ready, data FROM media WHERE ready = 0 ORDER BY id').fetchall()
        return [self._row_to_media(row) for row in rows]

    def delete_by_id(self, media_id: int) -> bool:
        """删除媒体

        Returns:
            是否删除了记录
        """
        conn = self.ensure_connection()
        cursor = conn.execute('DELETE FROM media WHERE id = ?', (media_id,))
        return cursor.rowcount > 0

    def count(self) -> int:
        conn = self.ensure_connection()
        row = conn.execute('SELECT COUNT(*) AS total FROM media').fetchone()
        return int(row["total"])
