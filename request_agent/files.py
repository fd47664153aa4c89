"""File pointer resolution for multipart uploads."""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol

from request_agent.models import Event


DEFAULT_UPLOAD_CONTENT_TYPE = "application/octet-stream"


@dataclass
class UploadFile:
    """An opened file ready to be sent as a multipart field.

    The handling cycle that opened it owns the stream and closes it once the
    request has been sent.
    """

    filename: str
    stream: BinaryIO
    content_type: str = DEFAULT_UPLOAD_CONTENT_TYPE

    def close(self) -> None:
        self.stream.close()


class FileProvider(Protocol):
    """Resolves an event's file pointer to an open byte stream."""

    def open_upload(self, event: Event) -> UploadFile:
        ...


class LocalFileProvider:
    """Resolves file pointers to files under a local base directory."""

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = base_dir.resolve()

    def open_upload(self, event: Event) -> UploadFile:
        """Open the file referenced by ``event.payload['file_pointer']``.

        Raises:
            ValueError: If the event has no file pointer or it points outside
                the base directory.
            FileNotFoundError: If the file does not exist.
        """
        pointer = event.file_pointer
        if pointer is None:
            raise ValueError("Event does not carry a file pointer")

        path = (self._base_dir / pointer.file).resolve()
        if not path.is_relative_to(self._base_dir):
            raise ValueError(f"File pointer escapes base directory: {pointer.file}")

        content_type, _ = mimetypes.guess_type(path.name)
        return UploadFile(
            filename=path.name,
            stream=open(path, "rb"),
            content_type=content_type or DEFAULT_UPLOAD_CONTENT_TYPE,
        )
