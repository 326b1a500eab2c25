import socket
from dataclasses import dataclass
from typing import Any, Optional

import boto3
import botocore.exceptions

from .exceptions import (
    AuthError,
    NotFoundError,
    ObjectStoreError,
    PermanentError,
    TransientError,
    UploadValidationError,
)
from .logger import logger
from .models.destination import Destination
from .models.object_descriptor import ObjectDescriptor
from .models.s3_part import S3Part
from .object_store_client import ObjectStoreClient


_TRANSIENT_CODES = {
    "InternalError",
    "RequestTimeout",
    "ServiceUnavailable",
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
}
_AUTH_CODES = {
    "AccessDenied",
    "ExpiredToken",
    "InvalidAccessKeyId",
    "InvalidToken",
    "SignatureDoesNotMatch",
}
_NOT_FOUND_CODES = {"NoSuchBucket", "404"}
_VALIDATION_CODES = {
    "EntityTooSmall",
    "InvalidPart",
    "InvalidPartOrder",
    "MalformedXML",
}


def translate_error(exception: Exception) -> ObjectStoreError:
    """Map a boto/botocore failure onto the object-store error taxonomy."""
    if isinstance(
        exception,
        (
            botocore.exceptions.ConnectionError,
            botocore.exceptions.HTTPClientError,
            botocore.exceptions.IncompleteReadError,
            socket.error,
        ),
    ):
        return TransientError(str(exception))

    if isinstance(exception, botocore.exceptions.ClientError):
        error = exception.response.get("Error", {})
        code = str(error.get("Code", ""))
        status = exception.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        message = f"{code}: {error.get('Message', '')}"
        if code in _TRANSIENT_CODES or (status is not None and status >= 500):
            return TransientError(message)
        if code in _AUTH_CODES:
            return AuthError(message)
        if code in _NOT_FOUND_CODES:
            return NotFoundError(message)
        if code in _VALIDATION_CODES:
            return UploadValidationError(message)
        return PermanentError(message)

    return PermanentError(str(exception))


@dataclass
class S3ServiceConfig:
    s3_endpoint_url: str
    s3_access_key: str
    s3_secret_key: str
    s3_region_name: Optional[str] = None


class S3ObjectStoreClient(ObjectStoreClient):
    client: Any = None

    def __init__(self, config: S3ServiceConfig) -> None:
        self.client = boto3.client(
            "s3",
            endpoint_url=config.s3_endpoint_url,
            aws_access_key_id=config.s3_access_key,
            aws_secret_access_key=config.s3_secret_key,
            region_name=config.s3_region_name,
        )
        logger.info("Initiated client", extra={"endpoint_url": config.s3_endpoint_url})

    def is_alive(self) -> bool:
        try:
            self.client.list_buckets()
            return True
        except Exception:  # pylint: disable=broad-exception-caught
            return False

    def begin_upload(self, destination: Destination) -> str:
        logger.debug(
            "Initiating multipart upload",
            extra={"bucket": destination.bucket, "key": destination.key},
        )
        try:
            response = self.client.create_multipart_upload(
                Bucket=destination.bucket,
                Key=destination.key,
                **destination.extra_args,
            )
        except (
            botocore.exceptions.BotoCoreError,
            botocore.exceptions.ClientError,
            socket.error,
        ) as exception:
            logger.exception(
                "Failed to initiate upload",
                extra={"bucket": destination.bucket, "key": destination.key},
            )
            raise translate_error(exception) from exception

        upload_id: str = response["UploadId"]
        logger.debug(
            "Multipart upload initiated",
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
        logger.debug(
            "Uploading part",
            extra={"key": destination.key, "part_number": part_number},
        )
        try:
            response = self.client.upload_part(
                Bucket=destination.bucket,
                Key=destination.key,
                PartNumber=part_number,
                UploadId=upload_id,
                Body=payload,
            )
        except (
            botocore.exceptions.BotoCoreError,
            botocore.exceptions.ClientError,
            socket.error,
        ) as exception:
            raise translate_error(exception) from exception

        logger.debug(
            "Uploaded part",
            extra={
                "key": destination.key,
                "part_number": part_number,
                "upload_id": upload_id,
            },
        )
        etag: str = response["ETag"]
        return etag

    def complete_upload(
        self,
        destination: Destination,
        upload_id: str,
        parts: list[tuple[int, str]],
    ) -> ObjectDescriptor:
        parts_info: list[S3Part] = [
            S3Part(PartNumber=part_number, ETag=etag) for part_number, etag in parts
        ]
        logger.debug(
            "Completing multipart upload",
            extra={
                "bucket": destination.bucket,
                "key": destination.key,
                "upload_id": upload_id,
                "parts": len(parts_info),
            },
        )
        try:
            response = self.client.complete_multipart_upload(
                Bucket=destination.bucket,
                Key=destination.key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts_info},
            )
        except (
            botocore.exceptions.BotoCoreError,
            botocore.exceptions.ClientError,
            socket.error,
        ) as exception:
            raise translate_error(exception) from exception

        return ObjectDescriptor(
            bucket=response.get("Bucket", destination.bucket),
            key=response.get("Key", destination.key),
            etag=response.get("ETag"),
            location=response.get("Location"),
            version_id=response.get("VersionId"),
        )

    def abort_upload(self, destination: Destination, upload_id: str) -> None:
        logger.debug(
            "Aborting multipart upload",
            extra={"key": destination.key, "upload_id": upload_id},
        )
        try:
            self.client.abort_multipart_upload(
                Bucket=destination.bucket,
                Key=destination.key,
                UploadId=upload_id,
            )
        except (
            botocore.exceptions.BotoCoreError,
            botocore.exceptions.ClientError,
            socket.error,
        ) as exception:
            raise translate_error(exception) from exception
