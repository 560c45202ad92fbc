"""
S3-compatible object store for index states.

Each index is two objects, ``{prefix}{sanitized_key}/state.json`` and
``{prefix}{sanitized_key}/search.json``. Works against AWS S3 and
S3-compatible services (MinIO, R2) via ``endpoint`` and path-style addressing.
"""

import asyncio
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from context_connectors.config import DEFAULT_S3_PREFIX, DEFAULT_S3_REGION, S3Config
from context_connectors.exceptions import ConfigurationError, StoreError
from context_connectors.logger import setup_logger
from context_connectors.stores.base import (
    SEARCH_FILE,
    STATE_FILE,
    IndexStore,
    parse_state,
    serialize_state,
)
from context_connectors.types import IndexState, IndexStateSearchOnly
from context_connectors.utils import sanitize_key

logger = setup_logger(__name__)

_NOT_FOUND_CODES = ("NoSuchKey", "404", "NotFound")
_TRANSIENT_CODES = (
    "RequestTimeout",
    "ThrottlingException",
    "SlowDown",
    "ServiceUnavailable",
    "InternalError",
)

# service errors plus botocore client-side failures such as dropped connections
_S3_ERRORS = (ClientError, BotoCoreError)


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def _is_transient(exc: BaseException) -> bool:
    """Return True for errors that are likely transient and worth retrying."""
    if isinstance(exc, ClientError):
        return _error_code(exc) in _TRANSIENT_CODES
    return isinstance(exc, (ConnectionError, TimeoutError))


_retry_transient = retry(
    retry=retry_if_exception(_is_transient),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)


def normalize_prefix(prefix: Optional[str]) -> str:
    if not prefix:
        return ""
    return prefix if prefix.endswith("/") else prefix + "/"


class S3Store(IndexStore):
    """IndexStore backed by boto3."""

    def __init__(
        self,
        bucket: str,
        prefix: Optional[str] = DEFAULT_S3_PREFIX,
        region: str = DEFAULT_S3_REGION,
        endpoint: Optional[str] = None,
        force_path_style: bool = False,
        client: Any = None,
    ):
        if not bucket:
            raise ConfigurationError("S3 store requires a bucket (set CC_S3_BUCKET)")

        self.bucket = bucket
        self.prefix = normalize_prefix(prefix)

        if client is None:
            client_kwargs: Dict[str, Any] = {"region_name": region}
            if endpoint:
                client_kwargs["endpoint_url"] = endpoint
            if force_path_style:
                client_kwargs["config"] = BotoConfig(s3={"addressing_style": "path"})
            client = boto3.client("s3", **client_kwargs)
        self._client = client

    @classmethod
    def from_config(
        cls,
        config: S3Config,
        bucket: Optional[str] = None,
        prefix: Optional[str] = None,
    ) -> "S3Store":
        """Build a store from S3Config, optionally overriding bucket and prefix."""
        return cls(
            bucket=bucket or config.bucket,
            prefix=config.prefix if prefix is None else prefix,
            region=config.region,
            endpoint=config.endpoint,
            force_path_style=config.force_path_style,
        )

    def _object_key(self, key: str, filename: str) -> str:
        sanitized = sanitize_key(key)
        if not sanitized:
            raise StoreError(f"Invalid index key '{key}': sanitizes to an empty string")
        return f"{self.prefix}{sanitized}/{filename}"

    # ============ Object operations (sync, run in worker threads) ============

    @_retry_transient
    def _get_object(self, object_key: str) -> Optional[bytes]:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=object_key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return None
            raise
        data = response["Body"].read()
        logger.debug(f"Downloaded s3://{self.bucket}/{object_key} ({len(data)} bytes)")
        return data

    @_retry_transient
    def _put_object(self, object_key: str, body: bytes) -> None:
        self._client.put_object(
            Bucket=self.bucket,
            Key=object_key,
            Body=body,
            ContentType="application/json",
        )
        logger.debug(f"Uploaded s3://{self.bucket}/{object_key} ({len(body)} bytes)")

    @_retry_transient
    def _delete_object(self, object_key: str) -> None:
        # delete_object is idempotent on S3
        self._client.delete_object(Bucket=self.bucket, Key=object_key)

    def _list_prefixes(self) -> List[str]:
        keys: List[str] = []
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix, Delimiter="/"):
            for common in page.get("CommonPrefixes") or []:
                name = common["Prefix"][len(self.prefix):].rstrip("/")
                if name:
                    keys.append(name)
        return keys

    # ============ IndexStore ============

    async def _load(self, object_key: str) -> Optional[bytes]:
        try:
            return await asyncio.to_thread(self._get_object, object_key)
        except _S3_ERRORS as e:
            raise StoreError(f"Failed to read s3://{self.bucket}/{object_key}: {e}") from e

    async def load_state(self, key: str) -> Optional[IndexState]:
        object_key = self._object_key(key, STATE_FILE)
        data = await self._load(object_key)
        if data is None:
            return None
        return parse_state(
            data, IndexState, f"s3://{self.bucket}/{object_key}", require_manifest=True
        )

    async def load_search(self, key: str) -> Optional[IndexStateSearchOnly]:
        object_key = self._object_key(key, SEARCH_FILE)
        data = await self._load(object_key)
        if data is None:
            return None
        return parse_state(data, IndexStateSearchOnly, f"s3://{self.bucket}/{object_key}")

    async def save(
        self, key: str, full_state: IndexState, search_state: IndexStateSearchOnly
    ) -> None:
        """Write search.json then state.json; roll search.json back if the second write fails."""
        search_key = self._object_key(key, SEARCH_FILE)
        state_key = self._object_key(key, STATE_FILE)
        search_body = serialize_state(search_state).encode("utf-8")
        state_body = serialize_state(full_state).encode("utf-8")

        try:
            previous_search = await asyncio.to_thread(self._get_object, search_key)
            await asyncio.to_thread(self._put_object, search_key, search_body)
        except _S3_ERRORS as e:
            raise StoreError(f"Failed to save index '{key}': {e}") from e

        try:
            await asyncio.to_thread(self._put_object, state_key, state_body)
        except _S3_ERRORS as e:
            logger.error(f"Failed to write {state_key}, restoring previous search state")
            try:
                if previous_search is None:
                    await asyncio.to_thread(self._delete_object, search_key)
                else:
                    await asyncio.to_thread(self._put_object, search_key, previous_search)
            except _S3_ERRORS as restore_error:
                logger.error(f"Failed to restore {search_key}: {restore_error}")
            raise StoreError(f"Failed to save index '{key}': {e}") from e

    async def delete(self, key: str) -> None:
        try:
            for filename in (STATE_FILE, SEARCH_FILE):
                await asyncio.to_thread(self._delete_object, self._object_key(key, filename))
        except _S3_ERRORS as e:
            raise StoreError(f"Failed to delete index '{key}': {e}") from e

    async def list(self) -> List[str]:
        try:
            return await asyncio.to_thread(self._list_prefixes)
        except _S3_ERRORS as e:
            raise StoreError(f"Failed to list s3://{self.bucket}/{self.prefix}: {e}") from e
