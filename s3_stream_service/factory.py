from concurrent.futures import Future
from typing import Any, BinaryIO, Callable, Optional

from .logger import logger
from .models.destination import Destination
from .models.object_descriptor import ObjectDescriptor
from .object_store_client import ObjectStoreClient
from .s3_client import S3ObjectStoreClient, S3ServiceConfig
from .s3_write_stream import DEFAULT_PIPE_CHUNK_SIZE, S3WriteStream
from .schemas import S3StreamConfig

ReadyCallback = Callable[[Optional[BaseException], Optional[S3WriteStream]], None]


def create_write_stream(
    client: ObjectStoreClient,
    destination: Destination,
    config: Optional[S3StreamConfig] = None,
    callback: Optional[ReadyCallback] = None,
) -> S3WriteStream:
    """
    Return a write stream for `destination` right away.

    The upload id is requested in the background, so the stream is not ready
    yet. Either wait on `stream.ready`, pass `callback`, which is called with
    `(error, stream)` once the session exists or could not be created, or
    start writing immediately and respect False return values from `write`.
    """
    stream = S3WriteStream(client, destination, config)

    if callback is not None:

        def _notify(future: "Future[str]") -> None:
            error = future.exception()
            if error is not None:
                callback(error, None)
            else:
                callback(None, stream)

        stream.ready.add_done_callback(_notify)

    return stream


class S3StreamService:
    def __init__(
        self,
        config: S3ServiceConfig,
        stream_config: Optional[S3StreamConfig] = None,
    ) -> None:
        self.client = S3ObjectStoreClient(config)
        self.stream_config = stream_config or S3StreamConfig()

    def is_alive(self) -> bool:
        return self.client.is_alive()

    def create_write_stream(
        self,
        bucket: str,
        key: str,
        extra_args: Optional[dict[str, Any]] = None,
        callback: Optional[ReadyCallback] = None,
    ) -> S3WriteStream:
        destination = Destination(bucket=bucket, key=key, extra_args=extra_args or {})
        return create_write_stream(
            self.client, destination, self.stream_config, callback=callback
        )

    def upload_fileobj(
        self,
        fileobj: BinaryIO,
        bucket: str,
        key: str,
        extra_args: Optional[dict[str, Any]] = None,
        chunk_size: int = DEFAULT_PIPE_CHUNK_SIZE,
    ) -> ObjectDescriptor:
        logger.debug(
            "Uploading file object as stream", extra={"bucket": bucket, "key": key}
        )
        stream = self.create_write_stream(bucket, key, extra_args=extra_args)
        try:
            return stream.pipe_from(fileobj, chunk_size=chunk_size)
        except Exception as exception:
            logger.exception(
                "Failed to upload file object", extra={"bucket": bucket, "key": key}
            )
            stream.cancel()
            raise exception
