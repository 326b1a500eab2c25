import logging

logger = logging.getLogger("s3_stream_service")
