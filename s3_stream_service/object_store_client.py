from abc import ABC, abstractmethod

from .models.destination import Destination
from .models.object_descriptor import ObjectDescriptor


class ObjectStoreClient(ABC):
    """
    Contract of the object store the write stream uploads into.

    Implementations own authentication, transport and the wire protocol.
    They report failures with the exceptions from `exceptions.py`:
    TransientError for anything worth retrying, PermanentError (or one of
    its subclasses) for everything else.
    """

    @abstractmethod
    def begin_upload(self, destination: Destination) -> str:
        """
        Start a multipart upload and return its upload id.

        :raises AuthError, NotFoundError, TransientError:
        """

    @abstractmethod
    def upload_part(
        self,
        destination: Destination,
        upload_id: str,
        part_number: int,
        payload: bytes,
    ) -> str:
        """
        Upload one part and return its integrity tag (ETag).

        :raises TransientError, PermanentError:
        """

    @abstractmethod
    def complete_upload(
        self,
        destination: Destination,
        upload_id: str,
        parts: list[tuple[int, str]],
    ) -> ObjectDescriptor:
        """
        Assemble the parts, given as ascending (part number, tag) pairs.

        :raises UploadValidationError, TransientError:
        """

    @abstractmethod
    def abort_upload(self, destination: Destination, upload_id: str) -> None:
        """Discard the upload and every part uploaded so far."""
