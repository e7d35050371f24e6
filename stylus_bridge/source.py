"""Source inputs accepted by ``compile`` and ``convert``.

A source is one of:

- ``Text``: a plain string, compiled verbatim
- ``NamedFile``: a filesystem path (``os.PathLike``), read from disk
- ``Readable``: an object with ``read()``, such as an open file or
  ``io.StringIO``; when it also carries a string ``name`` that names a
  real file (as open files do) it supplies the ``filename`` option
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from stylus_bridge.exceptions import InvalidSourceError
from stylus_bridge.exit_codes import ExitCode


@dataclass(frozen=True)
class Text:
    text: str

    @property
    def filename(self) -> Optional[str]:
        return None

    def read(self) -> str:
        return self.text


@dataclass(frozen=True)
class NamedFile:
    path: Path

    @property
    def filename(self) -> Optional[str]:
        return str(self.path.expanduser().resolve())

    def read(self) -> str:
        try:
            return self.path.expanduser().read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise InvalidSourceError(
                f"No such file: {self.path}",
                exit_code=ExitCode.NOT_FOUND,
                details={"path": str(self.path)},
            ) from e
        except (OSError, UnicodeDecodeError) as e:
            raise InvalidSourceError(
                f"Cannot read source file: {e}", details={"path": str(self.path)}
            ) from e


@dataclass(frozen=True)
class Readable:
    handle: Any
    name: Optional[str] = None

    @property
    def filename(self) -> Optional[str]:
        if not self.name:
            return None
        return str(Path(self.name).expanduser().resolve())

    def read(self) -> str:
        try:
            data = self.handle.read()
        except (OSError, ValueError) as e:
            # ValueError: I/O operation on closed file
            raise InvalidSourceError(f"Cannot read source: {e}") from e
        if isinstance(data, bytes):
            try:
                return data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidSourceError(f"Source is not valid UTF-8: {e}") from e
        if not isinstance(data, str):
            raise InvalidSourceError(
                f"read() returned {type(data).__name__}, expected str or bytes"
            )
        return data


SourceInput = Union[Text, NamedFile, Readable]


def _handle_name(handle: Any) -> Optional[str]:
    """Name of a file-like handle, if it refers to a real file."""
    name = getattr(handle, "name", None)
    if isinstance(name, bytes):
        name = os.fsdecode(name)
    # Integer names are file descriptors; "<stdin>" and friends are not files
    if not isinstance(name, str) or not name or name.startswith("<"):
        return None
    return name


def resolve_source(source: Any) -> SourceInput:
    """Classify ``source`` into one of the ``SourceInput`` variants.

    Raises:
        InvalidSourceError: If the value is none of the supported kinds
    """
    if isinstance(source, (Text, NamedFile, Readable)):
        return source
    if isinstance(source, str):
        return Text(source)
    if isinstance(source, os.PathLike):
        return NamedFile(Path(source))
    if callable(getattr(source, "read", None)):
        return Readable(source, _handle_name(source))
    raise InvalidSourceError(
        f"Unsupported source type: {type(source).__name__}",
        details={"expected": "str, path or object with read()"},
    )
