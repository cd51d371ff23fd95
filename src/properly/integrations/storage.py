"""对象存储客户端 -- 上传附件原始字节，返回持久 URL

三种后端：
- CloudinaryStorage: unsigned upload（upload_preset），httpx 直连 Upload API
- S3Storage: S3 兼容存储（如 Cloudflare R2），boto3 upload_fileobj
- LocalStorage: 写入本地目录，由 gateway 以静态文件方式提供（开发/测试）
"""

import asyncio
import io
import re
from pathlib import Path
from typing import Protocol

import httpx
import structlog
from pydantic import BaseModel, Field
from ulid import ULID

from .exceptions import StorageUploadError

log = structlog.get_logger()

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_object_name(filename: str) -> str:
    """生成唯一且安全的对象名：<ULID>-<清洗后的文件名>"""
    base = _UNSAFE_CHARS.sub("_", Path(filename).name).strip("._")
    prefix = str(ULID())
    return f"{prefix}-{base}" if base else prefix


class StoredBlob(BaseModel):
    """上传结果"""

    secure_url: str = Field(description="可公开访问的持久 URL")


class BlobStorage(Protocol):
    """对象存储接口"""

    name: str

    async def upload(
        self,
        data: bytes,
        *,
        folder: str,
        resource_type: str = "auto",
        filename: str = "",
        content_type: str = "application/octet-stream",
    ) -> StoredBlob:
        """上传原始字节，失败抛出 StorageUploadError"""
        ...


class CloudinaryStorage:
    """Cloudinary unsigned upload 客户端"""

    name = "cloudinary"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        cloud_name: str,
        upload_preset: str,
        timeout_s: int = 30,
    ) -> None:
        """
        Args:
            http_client: 共享的 httpx.AsyncClient
            cloud_name: Cloudinary cloud name
            upload_preset: unsigned upload preset 名称
            timeout_s: 单次上传超时（秒）
        """
        self._http = http_client
        self._cloud_name = cloud_name
        self._upload_preset = upload_preset
        self._timeout_s = timeout_s

    def _endpoint(self, resource_type: str) -> str:
        return f"{CLOUDINARY_API_BASE}/{self._cloud_name}/{resource_type}/upload"

    async def upload(
        self,
        data: bytes,
        *,
        folder: str,
        resource_type: str = "auto",
        filename: str = "",
        content_type: str = "application/octet-stream",
    ) -> StoredBlob:
        try:
            resp = await self._http.post(
                self._endpoint(resource_type),
                data={"upload_preset": self._upload_preset, "folder": folder},
                files={"file": (filename or "upload", data, content_type)},
                timeout=self._timeout_s,
            )
        except httpx.HTTPError as e:
            log.error(
                "storage_upload_failed",
                backend=self.name,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise StorageUploadError(self.name, e) from e

        if resp.status_code != 200:
            detail = _cloudinary_error_message(resp)
            log.error(
                "storage_upload_rejected",
                backend=self.name,
                status_code=resp.status_code,
                error=detail,
            )
            raise StorageUploadError(self.name, f"HTTP {resp.status_code}: {detail}")

        secure_url = resp.json().get("secure_url")
        if not secure_url:
            raise StorageUploadError(self.name, "response missing secure_url")

        log.debug("storage_upload_completed", backend=self.name, url=secure_url)
        return StoredBlob(secure_url=secure_url)


def _cloudinary_error_message(resp: httpx.Response) -> str:
    """提取 Cloudinary 错误响应中的 message"""
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return resp.text[:200]


class S3Storage:
    """S3 兼容对象存储客户端

    boto3 为同步 API，上传在工作线程中执行，不阻塞事件循环。
    """

    name = "s3"

    def __init__(self, s3_client, bucket: str, public_base_url: str) -> None:
        """
        Args:
            s3_client: boto3 S3 client
            bucket: 目标 bucket
            public_base_url: 对象公开访问 URL 前缀
        """
        self._s3 = s3_client
        self._bucket = bucket
        self._public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_credentials(
        cls,
        endpoint_url: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        public_base_url: str,
    ) -> "S3Storage":
        import boto3

        client = boto3.client(
            "s3",
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )
        return cls(client, bucket, public_base_url)

    async def upload(
        self,
        data: bytes,
        *,
        folder: str,
        resource_type: str = "auto",
        filename: str = "",
        content_type: str = "application/octet-stream",
    ) -> StoredBlob:
        key = f"{folder}/{safe_object_name(filename)}"
        try:
            await asyncio.to_thread(
                self._s3.upload_fileobj,
                io.BytesIO(data),
                self._bucket,
                key,
                ExtraArgs={"ContentType": content_type, "ACL": "public-read"},
            )
        except Exception as e:
            log.error(
                "storage_upload_failed",
                backend=self.name,
                key=key,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise StorageUploadError(self.name, e) from e

        return StoredBlob(secure_url=f"{self._public_base_url}/{key}")


class LocalStorage:
    """本地目录存储 -- 开发与测试使用

    文件写入在工作线程中执行，不阻塞事件循环。
    """

    name = "local"

    def __init__(self, root_dir: Path, public_base_url: str = "/media") -> None:
        """
        Args:
            root_dir: 存储根目录
            public_base_url: 对外 URL 前缀（gateway 在此前缀挂载 root_dir）
        """
        self._root_dir = Path(root_dir)
        self._public_base_url = public_base_url.rstrip("/")

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    async def upload(
        self,
        data: bytes,
        *,
        folder: str,
        resource_type: str = "auto",
        filename: str = "",
        content_type: str = "application/octet-stream",
    ) -> StoredBlob:
        object_name = safe_object_name(filename)
        file_path = self._root_dir / folder / object_name
        try:
            await asyncio.to_thread(self._write, file_path, data)
        except OSError as e:
            log.error(
                "storage_upload_failed",
                backend=self.name,
                path=str(file_path),
                error=str(e),
            )
            raise StorageUploadError(self.name, e) from e

        return StoredBlob(secure_url=f"{self._public_base_url}/{folder}/{object_name}")

    @staticmethod
    def _write(file_path: Path, data: bytes) -> None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(data)
