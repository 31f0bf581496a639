"""
Shared test utilities: Result assertions and an in-process S3 client.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from botocore.exceptions import ClientError

from contentstore.core.errors import ErrorCode


def assert_ok(result, message: str = "Expected Ok result"):
    """Assert that result is Ok and return its value."""
    if result.is_err():
        raise AssertionError(f"{message}: {result.error}")
    return result.unwrap()


def assert_err(result, code: Optional[ErrorCode] = None, message: str = "Expected Err result"):
    """Assert that result is Err (optionally with ``code``) and return the error."""
    if result.is_ok():
        raise AssertionError(f"{message}: Got Ok({result.unwrap()!r})")
    if code is not None and result.error.code is not code:
        raise AssertionError(f"{message}: expected {code.name}, got {result.error.code.name}")
    return result.error


def ids() -> Tuple[UUID, UUID]:
    """Fresh (owner_id, tenant_id) pair."""
    return uuid4(), uuid4()


# =============================================================================
# FAKE S3
# =============================================================================
def client_error(code: str, operation: str, status: int = 400) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class _FakeBody:
    def __init__(self, data: bytes) -> None:
        self._data = data

    async def __aenter__(self) -> _FakeBody:
        return self

    async def __aexit__(self, *args: Any) -> None:
        return None

    async def read(self) -> bytes:
        return self._data


class FakeS3Client:
    """
    Minimal async stand-in for an aioboto3 S3 client.

    Objects are kept per bucket; every call is recorded in ``calls``.
    Set ``fail_with`` to make the next data-plane call raise.
    """

    def __init__(self, buckets: Tuple[str, ...] = ()) -> None:
        self.buckets: Dict[str, Dict[str, Dict[str, Any]]] = {b: {} for b in buckets}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.fail_with: Optional[BaseException] = None
        self.closed = False

    def _record(self, name: str, kwargs: Dict[str, Any]) -> None:
        self.calls.append((name, kwargs))
        if self.fail_with is not None:
            error, self.fail_with = self.fail_with, None
            raise error

    def _bucket(self, name: str, operation: str) -> Dict[str, Dict[str, Any]]:
        if name not in self.buckets:
            raise client_error("NoSuchBucket", operation, 404)
        return self.buckets[name]

    async def head_bucket(self, Bucket: str) -> Dict[str, Any]:
        self.calls.append(("head_bucket", {"Bucket": Bucket}))
        if Bucket not in self.buckets:
            raise client_error("404", "HeadBucket", 404)
        return {}

    async def create_bucket(self, Bucket: str, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("create_bucket", {"Bucket": Bucket, **kwargs}))
        if Bucket in self.buckets:
            raise client_error("BucketAlreadyOwnedByYou", "CreateBucket", 409)
        self.buckets[Bucket] = {}
        return {}

    async def put_object(self, Bucket: str, Key: str, Body: bytes, **kwargs: Any) -> Dict[str, Any]:
        self._record("put_object", {"Bucket": Bucket, "Key": Key, **kwargs})
        self._bucket(Bucket, "PutObject")[Key] = {
            "Body": bytes(Body),
            "ContentType": kwargs.get("ContentType", "binary/octet-stream"),
            "ServerSideEncryption": kwargs.get("ServerSideEncryption"),
            "LastModified": datetime.now(timezone.utc),
        }
        return {"ETag": f'"{uuid4().hex}"'}

    async def get_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        self._record("get_object", {"Bucket": Bucket, "Key": Key})
        entry = self._bucket(Bucket, "GetObject").get(Key)
        if entry is None:
            raise client_error("NoSuchKey", "GetObject", 404)
        return {"Body": _FakeBody(entry["Body"]), "ContentType": entry["ContentType"]}

    async def head_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        self._record("head_object", {"Bucket": Bucket, "Key": Key})
        entry = self._bucket(Bucket, "HeadObject").get(Key)
        if entry is None:
            raise client_error("404", "HeadObject", 404)
        response = {
            "ContentLength": len(entry["Body"]),
            "ContentType": entry["ContentType"],
            "ETag": '"0123456789abcdef"',
            "LastModified": entry["LastModified"],
            "Metadata": {},
        }
        if entry["ServerSideEncryption"]:
            response["ServerSideEncryption"] = entry["ServerSideEncryption"]
        return response

    async def delete_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        self._record("delete_object", {"Bucket": Bucket, "Key": Key})
        self._bucket(Bucket, "DeleteObject").pop(Key, None)
        return {}

    async def generate_presigned_url(
        self,
        ClientMethod: str,
        Params: Dict[str, Any],
        ExpiresIn: int,
    ) -> str:
        self.calls.append((
            "generate_presigned_url",
            {"ClientMethod": ClientMethod, "Params": Params, "ExpiresIn": ExpiresIn},
        ))
        return f"https://{Params['Bucket']}.s3.example.com/{Params['Key']}?method={ClientMethod}"

    async def __aexit__(self, *args: Any) -> None:
        self.closed = True
