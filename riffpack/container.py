from __future__ import annotations

import io
import struct
import zipfile
import zlib
from typing import BinaryIO, Iterable, List, Optional, Set, Tuple

from .errors import DuplicateEntryError, FormatError, NotFoundError


# Exceptions zipfile may surface on a malformed or truncated archive
_ZIP_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    zlib.error,
    struct.error,
    EOFError,
    OSError,
    ValueError,
    NotImplementedError,
)

# General purpose bit 0: traditional PKWARE encryption
_FLAG_ENCRYPTED = 0x01


class ContainerWriter:
    """Writes named blobs into a deflate-compressed zip on ``fh``.

    ``fh`` need not be seekable: zipfile falls back to data descriptors, so
    the output can be piped straight into an encrypting stream. Entry names
    must be unique; a repeated name raises ``DuplicateEntryError`` and
    nothing is written for it.
    """

    def __init__(self, fh: BinaryIO, compression: int = zipfile.ZIP_DEFLATED):
        self.fh = fh
        self.compression = compression
        self.zf: Optional[zipfile.ZipFile] = None
        self.names: List[str] = []
        self._seen: Set[str] = set()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.abort()
        else:
            self.close()

    def open(self):
        if self.zf is not None:
            return
        self.zf = zipfile.ZipFile(self.fh, mode="w", compression=self.compression)

    def close(self):
        if self.zf is not None:
            self.zf.close()
            self.zf = None

    def abort(self):
        """Stop without writing the central directory; ``fh`` is left as is."""
        if self.zf is not None:
            # ZipFile.close() returns early once fp is gone, including from __del__
            self.zf.fp = None
            self.zf = None

    def add(self, name: str, data: bytes):
        if self.zf is None:
            raise RuntimeError("Container not open")
        if name in self._seen:
            raise DuplicateEntryError(f"duplicate container entry name: {name!r}")
        self._seen.add(name)
        self.zf.writestr(name, data)
        self.names.append(name)


def create_container(entries: Iterable[Tuple[str, bytes]], compression: int = zipfile.ZIP_DEFLATED) -> bytes:
    """Build a container in memory, one entry per (name, data) in order."""
    buf = io.BytesIO()
    with ContainerWriter(buf, compression=compression) as w:
        for name, data in entries:
            w.add(name, data)
    return buf.getvalue()


class ContainerReader:
    def __init__(self, data: bytes):
        self.data = data
        self.zf: Optional[zipfile.ZipFile] = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.zf is not None:
            return
        try:
            self.zf = zipfile.ZipFile(io.BytesIO(self.data), mode="r")
        except _ZIP_ERRORS as exc:
            raise FormatError(f"not a valid container: {exc}") from exc
        names = self.zf.namelist()
        if len(names) != len(set(names)):
            self.close()
            raise FormatError("container holds duplicate entry names")
        encrypted = [i.filename for i in self.zf.infolist() if i.flag_bits & _FLAG_ENCRYPTED]
        if encrypted:
            self.close()
            raise FormatError(f"container entry {encrypted[0]!r} is marked encrypted")

    def close(self):
        if self.zf is not None:
            self.zf.close()
            self.zf = None

    def list_names(self) -> Set[str]:
        if self.zf is None:
            raise RuntimeError("Container not open")
        return set(self.zf.namelist())

    def read(self, name: str) -> bytes:
        if self.zf is None:
            raise RuntimeError("Container not open")
        try:
            info = self.zf.getinfo(name)
        except KeyError:
            raise NotFoundError(f"no container entry named {name!r}") from None
        try:
            return self.zf.read(info)
        except (RuntimeError,) + _ZIP_ERRORS as exc:
            raise FormatError(f"container entry {name!r} is corrupted: {exc}") from exc


def open_container(data: bytes) -> ContainerReader:
    reader = ContainerReader(data)
    reader.open()
    return reader
