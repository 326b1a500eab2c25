import hashlib
import io
from dataclasses import dataclass, field
from threading import Lock
from typing import Any
from uuid import uuid4

import fsspec

from .exceptions import NotFoundError, TransientError, UploadValidationError
from .logger import logger
from .models.destination import Destination
from .models.object_descriptor import ObjectDescriptor
from .object_store_client import ObjectStoreClient


@dataclass
class FilesystemStoreConfig:
    protocol: str = "memory"
    storage_options: dict[str, Any] = field(default_factory=dict)
    root: str = ""
    # S3 refuses non-final parts below 5 MiB, 0 disables the check
    min_part_size: int = 0


@dataclass
class _StagedUpload:
    destination: Destination
    parts: dict[int, tuple[str, bytes]] = field(default_factory=dict)


class FilesystemObjectStoreClient(ObjectStoreClient):
    """
    Multipart uploads on top of any fsspec filesystem.

    Parts are staged in memory and the object is written in one go when the
    upload completes, so readers never observe a partial object.
    """

    def __init__(self, config: FilesystemStoreConfig) -> None:
        self.config = config
        self.client = fsspec.filesystem(config.protocol, **config.storage_options)
        self._uploads: dict[str, _StagedUpload] = {}
        self._uploads_lock = Lock()
        logger.info("Initiated filesystem", extra={"protocol": config.protocol})

    def _bucket_path(self, bucket: str) -> str:
        return f"{self.config.root}/{bucket}" if self.config.root else bucket

    def _object_path(self, destination: Destination) -> str:
        return f"{self._bucket_path(destination.bucket)}/{destination.key}"

    def _get_upload(self, upload_id: str) -> _StagedUpload:
        with self._uploads_lock:
            upload = self._uploads.get(upload_id)
        if upload is None:
            raise NotFoundError(f"NoSuchUpload: {upload_id}")
        return upload

    def begin_upload(self, destination: Destination) -> str:
        try:
            bucket_exists = self.client.exists(self._bucket_path(destination.bucket))
        except OSError as exception:
            raise TransientError(str(exception)) from exception
        if not bucket_exists:
            logger.error("Bucket not found", extra={"bucket": destination.bucket})
            raise NotFoundError(f"NoSuchBucket: {destination.bucket}")

        upload_id = uuid4().hex
        with self._uploads_lock:
            self._uploads[upload_id] = _StagedUpload(destination=destination)
        logger.debug(
            "Upload initiated",
            extra={
                "bucket": destination.bucket,
                "key": destination.key,
                "upload_id": upload_id,
            },
        )
        return upload_id

    def upload_part(
        self,
        destination: Destination,
        upload_id: str,
        part_number: int,
        payload: bytes,
    ) -> str:
        upload = self._get_upload(upload_id)
        body = bytes(payload)
        etag = f'"{hashlib.md5(body).hexdigest()}"'
        with self._uploads_lock:
            upload.parts[part_number] = (etag, body)
        logger.debug(
            "Staged chunk part",
            extra={"key": destination.key, "part_number": part_number},
        )
        return etag

    def complete_upload(
        self,
        destination: Destination,
        upload_id: str,
        parts: list[tuple[int, str]],
    ) -> ObjectDescriptor:
        upload = self._get_upload(upload_id)
        with self._uploads_lock:
            staged = dict(upload.parts)

        if not parts:
            raise UploadValidationError("MalformedXML: no parts given")
        if [part_number for part_number, _ in parts] != list(range(1, len(parts) + 1)):
            raise UploadValidationError("InvalidPartOrder: part numbers must be 1..n")

        merged = io.BytesIO()
        for index, (part_number, etag) in enumerate(parts):
            if part_number not in staged or staged[part_number][0] != etag:
                raise UploadValidationError(f"InvalidPart: {part_number}")
            body = staged[part_number][1]
            is_last = index == len(parts) - 1
            if not is_last and len(body) < self.config.min_part_size:
                raise UploadValidationError(f"EntityTooSmall: part {part_number}")
            merged.write(body)

        path = self._object_path(destination)
        try:
            with self.client.open(path, mode="wb") as fobj:
                fobj.write(merged.getbuffer())
        except OSError as exception:
            logger.exception("Failed to write object", extra={"path": path})
            raise TransientError(str(exception)) from exception

        with self._uploads_lock:
            del self._uploads[upload_id]

        digest = hashlib.md5(
            b"".join(bytes.fromhex(etag.strip('"')) for _, etag in parts)
        ).hexdigest()
        logger.debug(
            "Upload completed in chunks",
            extra={"path": path, "upload_id": upload_id, "parts": len(parts)},
        )
        return ObjectDescriptor(
            bucket=destination.bucket,
            key=destination.key,
            etag=f'"{digest}-{len(parts)}"',
            location=path,
        )

    def abort_upload(self, destination: Destination, upload_id: str) -> None:
        with self._uploads_lock:
            upload = self._uploads.pop(upload_id, None)
        if upload is None:
            raise NotFoundError(f"NoSuchUpload: {upload_id}")
        logger.info(
            "Upload aborted",
            extra={"key": destination.key, "upload_id": upload_id},
        )
