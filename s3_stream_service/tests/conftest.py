# pylint: disable=import-error
from typing import Callable
from unittest.mock import MagicMock

import pytest
from faker import Faker
from s3_stream_service.filesystem_client import (  # type: ignore[import-not-found]
    FilesystemObjectStoreClient,
    FilesystemStoreConfig,
)
from s3_stream_service.models.destination import Destination  # type: ignore[import-not-found]
from s3_stream_service.s3_client import S3ServiceConfig  # type: ignore[import-not-found]
from s3_stream_service.schemas import S3StreamConfig  # type: ignore[import-not-found]

fake = Faker()

TEST_PART_SIZE = 1024


@pytest.fixture
def s3_config() -> S3ServiceConfig:
    return S3ServiceConfig(
        s3_access_key=fake.password(),
        s3_endpoint_url=fake.url(),
        s3_secret_key=fake.password(),
    )


@pytest.fixture
def stream_config() -> S3StreamConfig:
    return S3StreamConfig(
        part_size=TEST_PART_SIZE,
        max_concurrency=2,
        max_attempts=3,
        retry_backoff_sec=0,
    )


@pytest.fixture
def memory_store() -> FilesystemObjectStoreClient:
    return FilesystemObjectStoreClient(FilesystemStoreConfig(protocol="memory"))


@pytest.fixture
def destination(memory_store: FilesystemObjectStoreClient) -> Destination:
    bucket = fake.uuid4().replace("-", "")
    memory_store.client.makedirs(bucket, exist_ok=True)
    return Destination(bucket=bucket, key=f"{fake.word()}/{fake.file_name()}")


@pytest.fixture
def store_client(memory_store: FilesystemObjectStoreClient) -> MagicMock:
    """Memory-backed store whose calls are recorded."""
    return MagicMock(wraps=memory_store)


@pytest.fixture
def read_object(
    memory_store: FilesystemObjectStoreClient,
) -> Callable[[Destination], bytes]:
    def _read(destination: Destination) -> bytes:
        content: bytes = memory_store.client.cat_file(
            f"{destination.bucket}/{destination.key}"
        )
        return content

    return _read
