"""
Storage: 업로드/미리보기/아카이브 바이트 저장소.

규칙:
- 키 형식: "<prefix>/<session_id>/<name>" (슬래시 구분, 상대 경로만)
- 절대 경로, "..", 역슬래시가 들어간 키는 거부 (경로 조작 방지)
- 로컬 쓰기는 원자적 (temp → rename)
- 전역 싱글턴 없음: 앱 시작 시 생성해서 주입
"""

import hashlib
import hmac
import io
import logging
import os
import secrets
import shutil
import tempfile
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, BinaryIO
from urllib.parse import quote, urlencode

from minio import Minio
from minio.error import S3Error

from src.core.atomic import _fsync_dir, atomic_write_bytes
from src.domain.errors import ErrorCodes, StorageError

logger = logging.getLogger(__name__)

DEFAULT_PRESIGN_TTL = timedelta(hours=1)
STREAM_CHUNK_SIZE = 1024 * 1024
# S3 multipart 최소 파트 크기(5MiB) 이상
STREAM_PART_SIZE = 10 * 1024 * 1024


@dataclass
class StoredObject:
    """저장된 객체 메타데이터 (정리 스크립트용)."""
    key: str
    size: int
    last_modified: datetime


def validate_key(key: str) -> str:
    """
    스토리지 키 검증.

    Raises:
        StorageError: STORAGE_INVALID_KEY
    """
    if (
        not key
        or key.startswith("/")
        or "\\" in key
        or "\x00" in key
        or any(part in ("", ".", "..") for part in key.split("/"))
    ):
        raise StorageError(ErrorCodes.STORAGE_INVALID_KEY, key=key)
    return key


def _ttl_seconds(ttl: timedelta | int | None) -> int:
    if ttl is None:
        ttl = DEFAULT_PRESIGN_TTL
    if isinstance(ttl, timedelta):
        return int(ttl.total_seconds())
    return int(ttl)


class Storage(ABC):
    """바이트 저장소 인터페이스."""

    backend: str = ""

    @abstractmethod
    def put_bytes(self, key: str, data: bytes, content_type: str | None = None) -> str:
        """바이트 저장. 저장된 키 반환."""

    @abstractmethod
    def put_file(self, key: str, path: Path, content_type: str | None = None) -> str:
        """로컬 파일 업로드. 저장된 키 반환."""

    @abstractmethod
    def upload_stream(
        self, key: str, stream: BinaryIO, content_type: str | None = None
    ) -> int:
        """
        길이를 모르는 스트림을 EOF까지 읽어 저장.

        Returns:
            저장된 바이트 수

        Raises:
            StorageError: 스트림 읽기/업로드 실패 (부분 객체는 남기지 않음)
        """

    @abstractmethod
    def get_bytes(self, key: str) -> bytes:
        """
        Raises:
            StorageError: STORAGE_NOT_FOUND, STORAGE_READ_FAILED
        """

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def presigned_url(self, key: str, ttl: timedelta | int | None = None) -> str:
        """만료 시간이 있는 다운로드 URL."""

    @abstractmethod
    def locate(self, key: str) -> str:
        """사람이 읽을 위치 (로컬 경로 또는 s3://bucket/key)."""

    @abstractmethod
    def iter_objects(self, prefix: str = "") -> Iterator[StoredObject]:
        ...


# =============================================================================
# Local filesystem
# =============================================================================

class LocalStorage(Storage):
    """
    로컬 디렉토리 저장소.

    presigned URL은 HMAC 서명 + 만료 시각을 쿼리로 붙인 /files/<key> 경로.

    Usage:
        storage = LocalStorage(Path("data/storage"), base_url="http://localhost:8000")
        storage.put_bytes("uploads/abc/template.docx", content)
    """

    backend = "local"

    def __init__(
        self,
        root: Path,
        base_url: str = "",
        secret: str | None = None,
    ):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")
        self._secret = (secret or secrets.token_hex(32)).encode("utf-8")

    def path_for(self, key: str) -> Path:
        """키 → 파일 경로 (root 밖으로 나가지 않음)."""
        validate_key(key)
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise StorageError(ErrorCodes.STORAGE_INVALID_KEY, key=key)
        return path

    def put_bytes(self, key: str, data: bytes, content_type: str | None = None) -> str:
        try:
            atomic_write_bytes(self.path_for(key), data)
        except OSError as e:
            raise StorageError(ErrorCodes.STORAGE_WRITE_FAILED, key=key, error=str(e)) from e
        logger.debug(f"Stored {len(data)} bytes at {key}")
        return key

    def put_file(self, key: str, path: Path, content_type: str | None = None) -> str:
        target = self.path_for(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=target.parent, suffix=".tmp", delete=False
            ) as tmp:
                temp_path = Path(tmp.name)
            try:
                shutil.copyfile(path, temp_path)
                os.replace(temp_path, target)
            finally:
                if temp_path.exists():
                    temp_path.unlink()
            _fsync_dir(target.parent)
        except OSError as e:
            raise StorageError(ErrorCodes.STORAGE_WRITE_FAILED, key=key, error=str(e)) from e
        return key

    def upload_stream(
        self, key: str, stream: BinaryIO, content_type: str | None = None
    ) -> int:
        target = self.path_for(key)
        target.parent.mkdir(parents=True, exist_ok=True)

        total = 0
        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=target.parent, suffix=".part", delete=False
            ) as tmp:
                temp_path = Path(tmp.name)
                while True:
                    chunk = stream.read(STREAM_CHUNK_SIZE)
                    if not chunk:
                        break
                    tmp.write(chunk)
                    total += len(chunk)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(temp_path, target)
            _fsync_dir(target.parent)
        except Exception as e:
            if temp_path is not None and temp_path.exists():
                temp_path.unlink()
            raise StorageError(ErrorCodes.STORAGE_WRITE_FAILED, key=key, error=str(e)) from e

        logger.info(f"Streamed {total} bytes to {key}")
        return total

    def get_bytes(self, key: str) -> bytes:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise StorageError(ErrorCodes.STORAGE_NOT_FOUND, key=key) from e
        except OSError as e:
            raise StorageError(ErrorCodes.STORAGE_READ_FAILED, key=key, error=str(e)) from e

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)

    def presigned_url(self, key: str, ttl: timedelta | int | None = None) -> str:
        validate_key(key)
        expires = int(time.time()) + _ttl_seconds(ttl)
        query = urlencode({"expires": expires, "signature": self.sign(key, expires)})
        return f"{self.base_url}/files/{quote(key)}?{query}"

    def sign(self, key: str, expires: int) -> str:
        message = f"{key}:{expires}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def verify(self, key: str, expires: int, signature: str) -> bool:
        """presigned URL 서명/만료 검증."""
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self.sign(key, expires), signature)

    def locate(self, key: str) -> str:
        return str(self.path_for(key))

    def iter_objects(self, prefix: str = "") -> Iterator[StoredObject]:
        base = self.root / prefix if prefix else self.root
        if not base.exists():
            return
        for path in sorted(base.rglob("*")):
            if not path.is_file() or path.suffix in (".tmp", ".part"):
                continue
            stat = path.stat()
            yield StoredObject(
                key=path.relative_to(self.root).as_posix(),
                size=stat.st_size,
                last_modified=datetime.fromtimestamp(stat.st_mtime, UTC),
            )


# =============================================================================
# S3 compatible (MinIO SDK)
# =============================================================================

class MinioStorage(Storage):
    """
    S3 호환 오브젝트 스토리지.

    스트리밍 업로드는 길이 미지정(length=-1) multipart put_object 사용.
    """

    backend = "s3"

    def __init__(self, client: Minio, bucket: str, create_bucket: bool = False):
        self.client = client
        self.bucket = bucket
        if create_bucket and not client.bucket_exists(bucket_name=bucket):
            client.make_bucket(bucket_name=bucket)
            logger.info(f"Created bucket {bucket}")

    @classmethod
    def from_config(cls, s3_config: dict[str, Any]) -> "MinioStorage":
        """storage.s3 설정으로 생성."""
        client = Minio(
            endpoint=s3_config["endpoint"],
            access_key=s3_config.get("access_key"),
            secret_key=s3_config.get("secret_key"),
            secure=bool(s3_config.get("secure", True)),
            region=s3_config.get("region") or None,
        )
        return cls(
            client,
            s3_config["bucket"],
            create_bucket=bool(s3_config.get("create_bucket", False)),
        )

    def put_bytes(self, key: str, data: bytes, content_type: str | None = None) -> str:
        validate_key(key)
        try:
            self.client.put_object(
                bucket_name=self.bucket,
                object_name=key,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type or "application/octet-stream",
            )
        except S3Error as e:
            raise StorageError(ErrorCodes.STORAGE_WRITE_FAILED, key=key, error=str(e)) from e
        return key

    def put_file(self, key: str, path: Path, content_type: str | None = None) -> str:
        validate_key(key)
        try:
            self.client.fput_object(
                bucket_name=self.bucket,
                object_name=key,
                file_path=str(path),
                content_type=content_type or "application/octet-stream",
            )
        except S3Error as e:
            raise StorageError(ErrorCodes.STORAGE_WRITE_FAILED, key=key, error=str(e)) from e
        return key

    def upload_stream(
        self, key: str, stream: BinaryIO, content_type: str | None = None
    ) -> int:
        validate_key(key)
        try:
            result = self.client.put_object(
                bucket_name=self.bucket,
                object_name=key,
                data=stream,
                length=-1,
                part_size=STREAM_PART_SIZE,
                content_type=content_type or "application/octet-stream",
            )
        except Exception as e:
            # multipart 업로드는 완료 전에 실패하면 객체가 생성되지 않음
            raise StorageError(ErrorCodes.STORAGE_WRITE_FAILED, key=key, error=str(e)) from e

        logger.info(f"Streamed object {key} (etag={getattr(result, 'etag', None)})")
        return self.client.stat_object(bucket_name=self.bucket, object_name=key).size

    def get_bytes(self, key: str) -> bytes:
        validate_key(key)
        response = None
        try:
            response = self.client.get_object(bucket_name=self.bucket, object_name=key)
            return response.read()
        except S3Error as e:
            code = ErrorCodes.STORAGE_NOT_FOUND if e.code == "NoSuchKey" else ErrorCodes.STORAGE_READ_FAILED
            raise StorageError(code, key=key, error=str(e)) from e
        finally:
            if response is not None:
                response.close()
                response.release_conn()

    def exists(self, key: str) -> bool:
        validate_key(key)
        try:
            self.client.stat_object(bucket_name=self.bucket, object_name=key)
            return True
        except S3Error as e:
            if e.code in ("NoSuchKey", "NoSuchObject", "NotFound"):
                return False
            raise StorageError(ErrorCodes.STORAGE_READ_FAILED, key=key, error=str(e)) from e

    def delete(self, key: str) -> None:
        validate_key(key)
        try:
            self.client.remove_object(bucket_name=self.bucket, object_name=key)
        except S3Error as e:
            raise StorageError(ErrorCodes.STORAGE_WRITE_FAILED, key=key, error=str(e)) from e

    def presigned_url(self, key: str, ttl: timedelta | int | None = None) -> str:
        validate_key(key)
        return self.client.presigned_get_object(
            bucket_name=self.bucket,
            object_name=key,
            expires=timedelta(seconds=_ttl_seconds(ttl)),
        )

    def locate(self, key: str) -> str:
        return f"s3://{self.bucket}/{key}"

    def iter_objects(self, prefix: str = "") -> Iterator[StoredObject]:
        for obj in self.client.list_objects(
            bucket_name=self.bucket, prefix=prefix or None, recursive=True
        ):
            if obj.is_dir:
                continue
            yield StoredObject(
                key=obj.object_name,
                size=obj.size or 0,
                last_modified=obj.last_modified,
            )


# =============================================================================
# Factory
# =============================================================================

def create_storage(config: dict[str, Any]) -> Storage:
    """
    설정으로 Storage 생성.

    Args:
        config: 전체 설정 (storage 섹션 사용)

    Returns:
        LocalStorage 또는 MinioStorage
    """
    storage_config = config.get("storage", {})
    backend = storage_config.get("backend", "local")

    if backend == "s3":
        return MinioStorage.from_config(storage_config.get("s3", {}))

    if backend == "local":
        local = storage_config.get("local", {})
        return LocalStorage(
            root=Path(local.get("root", "data/storage")),
            base_url=local.get("base_url", ""),
            secret=local.get("secret") or None,
        )

    raise ValueError(f"Unknown storage backend: {backend}")
