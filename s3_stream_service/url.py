from typing import Any

from .models.destination import Destination


class IncorrectSchemaException(Exception):
    """Url needs to start with `s3://`"""


def parse_url(url: str, extra_args: dict[str, Any] | None = None) -> Destination:
    if not url.startswith("s3://"):
        raise IncorrectSchemaException

    just_data = url.replace("s3://", "", 1)
    bucket, key = just_data.split("/", maxsplit=1)

    return Destination(
        bucket=bucket,
        key=key,
        extra_args=extra_args or {},
    )
