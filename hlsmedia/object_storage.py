"""对象存储客户端模块 - 基于 boto3 访问 MinIO / S3 兼容存储。

提供以键为单位的流式读写、前缀列举和删除，以及启动时的桶初始化。
"""

import logging
from typing import BinaryIO, Iterator, List, Optional

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import ClientError

from hlsmedia.transcode.config import ObjectStorageConfig

logger = logging.getLogger(__name__)

__all__ = [
    "ObjectStorage",
    "create_s3_client",
]

# 对象不存在时 S3 / MinIO 返回的错误码
_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}
_MISSING_BUCKET_CODES = {"NoSuchBucket", "404", "NotFound"}


def create_s3_client(config: ObjectStorageConfig):
    """根据配置创建 boto3 S3 客户端。"""
    client_kwargs = {
        "service_name": "s3",
        "endpoint_url": config.endpoint_url,
        "region_name": config.region,
    }
    if config.access_key and config.secret_key:
        client_kwargs["aws_access_key_id"] = config.access_key
        client_kwargs["aws_secret_access_key"] = config.secret_key
    return boto3.client(**client_kwargs)


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class ObjectStorage:
    """单个桶上的对象存储操作。"""

    def __init__(self, client, bucket: str, part_size: int = 10 * 1024 * 1024):
        self.client = client
        self.bucket = bucket
        self.part_size = part_size
        self._transfer_config = TransferConfig(
            multipart_threshold=part_size,
            multipart_chunksize=part_size,
        )

    @classmethod
    def from_config(cls, config: ObjectStorageConfig, part_size: int = 10 * 1024 * 1024) -> "ObjectStorage":
        return cls(create_s3_client(config), config.bucket, part_size=part_size)

    def ensure_bucket(self) -> bool:
        """桶不存在时创建。

        Returns:
            是否新建了桶
        """
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return False
        except ClientError as exc:
            if _error_code(exc) not in _MISSING_BUCKET_CODES:
                raise
        self.client.create_bucket(Bucket=self.bucket)
        logger.info(f"Bucket {self.bucket} created")
        return True

    def put(self, key: str, content_type: str, stream: BinaryIO, size: int = -1) -> None:
        """上传对象。

        size 为 -1 表示长度未知，按 part_size 分片流式上传。

        Args:
            key: 对象键
            content_type: MIME 类型
            stream: 可读字节流
            size: 已知长度，未知为 -1
        """
        extra_args = {"ContentType": content_type}
        if size >= 0 and size <= self.part_size:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=stream,
                ContentLength=size,
                ContentType=content_type,
            )
            return
        self.client.upload_fileobj(
            stream,
            self.bucket,
            key,
            ExtraArgs=extra_args,
            Config=self._transfer_config,
        )

    def get(self, key: str) -> Optional[BinaryIO]:
        """获取对象的字节流。

        Returns:
            流对象（调用方负责关闭），不存在返回 None
        """
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                return None
            raise
        return response["Body"]

    def iter_keys(self, prefix: str) -> Iterator[str]:
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for item in page.get("Contents", []) or []:
                yield item["Key"]

    def list(self, prefix: str) -> List[str]:
        """列出前缀下的所有对象键。"""
        return list(self.iter_keys(prefix))

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)
