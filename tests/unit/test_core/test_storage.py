"""
test_storage.py - Storage 테스트

테스트 대상:
- validate_key: 경로 조작 키 거부
- LocalStorage: 원자적 쓰기, 스트리밍 업로드, presigned URL 서명/만료
- MinioStorage: SDK 호출 인자 (모의 클라이언트)
- create_storage: 설정 → 백엔드 선택
"""

import io
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from src.core.storage import (
    STREAM_PART_SIZE,
    LocalStorage,
    MinioStorage,
    create_storage,
    validate_key,
)
from src.domain.errors import ErrorCodes, StorageError

# =============================================================================
# validate_key 테스트
# =============================================================================


class TestValidateKey:
    """validate_key 함수 테스트."""

    def test_accepts_nested_key(self):
        assert validate_key("uploads/abc/template/a.docx") == "uploads/abc/template/a.docx"

    @pytest.mark.parametrize(
        "key",
        ["", "/etc/passwd", "uploads/../secret", "a//b", "a/./b", "a\\b", "a\x00b"],
    )
    def test_rejects_unsafe_keys(self, key: str):
        """절대 경로, .., 빈 세그먼트, 역슬래시, NUL 거부."""
        with pytest.raises(StorageError) as exc_info:
            validate_key(key)

        assert exc_info.value.code == ErrorCodes.STORAGE_INVALID_KEY


# =============================================================================
# LocalStorage 테스트
# =============================================================================


class TestLocalStorage:
    """LocalStorage 기본 동작."""

    def test_put_and_get_bytes(self, storage: LocalStorage):
        storage.put_bytes("uploads/s1/template/a.docx", b"hello")

        assert storage.get_bytes("uploads/s1/template/a.docx") == b"hello"
        assert storage.exists("uploads/s1/template/a.docx")

    def test_put_overwrites(self, storage: LocalStorage):
        storage.put_bytes("k/a.bin", b"one")
        storage.put_bytes("k/a.bin", b"two")

        assert storage.get_bytes("k/a.bin") == b"two"

    def test_no_temp_files_left(self, storage: LocalStorage):
        """원자적 쓰기 후 .tmp 파일 없음."""
        storage.put_bytes("k/a.bin", b"data")

        leftovers = [p for p in storage.root.rglob("*") if p.suffix == ".tmp"]
        assert leftovers == []

    def test_get_missing_raises_not_found(self, storage: LocalStorage):
        with pytest.raises(StorageError) as exc_info:
            storage.get_bytes("uploads/none.docx")

        assert exc_info.value.code == ErrorCodes.STORAGE_NOT_FOUND

    def test_delete(self, storage: LocalStorage):
        storage.put_bytes("k/a.bin", b"data")

        storage.delete("k/a.bin")
        storage.delete("k/a.bin")  # 없어도 에러 없음

        assert not storage.exists("k/a.bin")

    def test_put_file(self, storage: LocalStorage, tmp_path: Path):
        source = tmp_path / "archive.zip"
        source.write_bytes(b"PK...")

        storage.put_file("generated/s1/documents_s1.zip", source)

        assert storage.get_bytes("generated/s1/documents_s1.zip") == b"PK..."

    def test_path_stays_under_root(self, storage: LocalStorage):
        path = storage.path_for("uploads/s1/a.docx")

        assert path.is_relative_to(storage.root.resolve())

    def test_locate_returns_path(self, storage: LocalStorage):
        assert storage.locate("a/b.txt").endswith("b.txt")


class TestLocalStorageStream:
    """upload_stream 테스트."""

    def test_upload_stream_reads_until_eof(self, storage: LocalStorage):
        data = b"x" * (3 * 1024 * 1024 + 17)

        size = storage.upload_stream("generated/s1/a.zip", io.BytesIO(data))

        assert size == len(data)
        assert storage.get_bytes("generated/s1/a.zip") == data

    def test_failing_stream_leaves_no_object(self, storage: LocalStorage):
        """스트림 읽기 실패 → StorageError, 부분 파일 없음."""

        class BrokenStream:
            def __init__(self):
                self.calls = 0

            def read(self, size: int = -1) -> bytes:
                self.calls += 1
                if self.calls > 1:
                    raise OSError("producer died")
                return b"partial"

        with pytest.raises(StorageError) as exc_info:
            storage.upload_stream("generated/s1/a.zip", BrokenStream())

        assert exc_info.value.code == ErrorCodes.STORAGE_WRITE_FAILED
        assert not storage.exists("generated/s1/a.zip")
        assert list(storage.root.rglob("*.part")) == []


class TestLocalStoragePresign:
    """presigned URL 서명/검증."""

    def test_presigned_url_shape(self, storage: LocalStorage):
        url = storage.presigned_url("generated/s1/documents_s1.zip", timedelta(minutes=5))

        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        assert url.startswith("http://testserver/files/generated/s1/documents_s1.zip?")
        assert "expires" in query
        assert "signature" in query

    def test_verify_roundtrip(self, storage: LocalStorage):
        url = storage.presigned_url("a/b.zip", 60)
        query = parse_qs(urlparse(url).query)

        assert storage.verify("a/b.zip", int(query["expires"][0]), query["signature"][0])

    def test_verify_rejects_other_key(self, storage: LocalStorage):
        url = storage.presigned_url("a/b.zip", 60)
        query = parse_qs(urlparse(url).query)

        assert not storage.verify("a/c.zip", int(query["expires"][0]), query["signature"][0])

    def test_verify_rejects_expired(self, storage: LocalStorage):
        expires = 1000  # 1970년
        signature = storage.sign("a/b.zip", expires)

        assert not storage.verify("a/b.zip", expires, signature)

    def test_different_secret_rejected(self, storage: LocalStorage, tmp_path: Path):
        other = LocalStorage(tmp_path / "other", secret="other-secret")
        url = storage.presigned_url("a/b.zip", 60)
        query = parse_qs(urlparse(url).query)

        assert not other.verify("a/b.zip", int(query["expires"][0]), query["signature"][0])


class TestLocalStorageIterObjects:
    """iter_objects 테스트."""

    def test_lists_by_prefix(self, storage: LocalStorage):
        storage.put_bytes("uploads/s1/a.docx", b"1")
        storage.put_bytes("uploads/s2/b.xlsx", b"22")
        storage.put_bytes("generated/s1/c.zip", b"333")

        keys = sorted(obj.key for obj in storage.iter_objects("uploads/"))

        assert keys == ["uploads/s1/a.docx", "uploads/s2/b.xlsx"]

    def test_skips_partial_files(self, storage: LocalStorage):
        storage.put_bytes("uploads/s1/a.docx", b"1")
        (storage.root / "uploads" / "s1" / "x.part").write_bytes(b"partial")

        keys = [obj.key for obj in storage.iter_objects("uploads/")]

        assert keys == ["uploads/s1/a.docx"]

    def test_missing_prefix(self, storage: LocalStorage):
        assert list(storage.iter_objects("previews/")) == []


# =============================================================================
# MinioStorage 테스트
# =============================================================================


class TestMinioStorage:
    """MinioStorage: SDK 호출 인자 확인."""

    @pytest.fixture
    def client(self) -> MagicMock:
        return MagicMock()

    def test_create_bucket(self, client: MagicMock):
        client.bucket_exists.return_value = False

        MinioStorage(client, "bucket", create_bucket=True)

        client.make_bucket.assert_called_once_with(bucket_name="bucket")

    def test_put_bytes(self, client: MagicMock):
        storage = MinioStorage(client, "bucket")

        storage.put_bytes("uploads/s1/a.docx", b"abc", content_type="application/x")

        kwargs = client.put_object.call_args.kwargs
        assert kwargs["bucket_name"] == "bucket"
        assert kwargs["object_name"] == "uploads/s1/a.docx"
        assert kwargs["length"] == 3
        assert kwargs["content_type"] == "application/x"

    def test_upload_stream_uses_unknown_length(self, client: MagicMock):
        """길이 미지정 multipart 업로드."""
        client.stat_object.return_value.size = 1234
        storage = MinioStorage(client, "bucket")
        stream = io.BytesIO(b"zip bytes")

        size = storage.upload_stream("generated/s1/a.zip", stream)

        kwargs = client.put_object.call_args.kwargs
        assert kwargs["length"] == -1
        assert kwargs["part_size"] == STREAM_PART_SIZE
        assert kwargs["data"] is stream
        assert size == 1234

    def test_upload_stream_failure(self, client: MagicMock):
        client.put_object.side_effect = OSError("connection reset")
        storage = MinioStorage(client, "bucket")

        with pytest.raises(StorageError) as exc_info:
            storage.upload_stream("generated/s1/a.zip", io.BytesIO(b""))

        assert exc_info.value.code == ErrorCodes.STORAGE_WRITE_FAILED

    def test_presigned_url(self, client: MagicMock):
        client.presigned_get_object.return_value = "https://s3/x"
        storage = MinioStorage(client, "bucket")

        url = storage.presigned_url("generated/s1/a.zip", 600)

        assert url == "https://s3/x"
        kwargs = client.presigned_get_object.call_args.kwargs
        assert kwargs["expires"] == timedelta(seconds=600)

    def test_get_bytes_releases_connection(self, client: MagicMock):
        response = client.get_object.return_value
        response.read.return_value = b"payload"
        storage = MinioStorage(client, "bucket")

        assert storage.get_bytes("a/b") == b"payload"
        response.close.assert_called_once()
        response.release_conn.assert_called_once()

    def test_locate(self, client: MagicMock):
        assert MinioStorage(client, "bucket").locate("a/b") == "s3://bucket/a/b"

    def test_invalid_key_rejected_before_sdk(self, client: MagicMock):
        storage = MinioStorage(client, "bucket")

        with pytest.raises(StorageError):
            storage.put_bytes("../x", b"")

        client.put_object.assert_not_called()


# =============================================================================
# create_storage 테스트
# =============================================================================


class TestCreateStorage:
    """create_storage 함수 테스트."""

    def test_local_backend(self, test_config: dict):
        storage = create_storage(test_config)

        assert isinstance(storage, LocalStorage)
        assert storage.backend == "local"

    def test_s3_backend(self, test_config: dict):
        test_config["storage"]["backend"] = "s3"
        test_config["storage"]["s3"].update(
            {"endpoint": "localhost:9000", "access_key": "a", "secret_key": "b", "secure": False}
        )

        storage = create_storage(test_config)

        assert isinstance(storage, MinioStorage)
        assert storage.bucket == "document-merge"

    def test_unknown_backend(self, test_config: dict):
        test_config["storage"]["backend"] = "ftp"

        with pytest.raises(ValueError):
            create_storage(test_config)
