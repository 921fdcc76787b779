"""AES-256-CBC envelope with a PBKDF2-HMAC-SHA512 password key.

A pack file is ``IV || AES-CBC(key, PKCS#7(container))``. There is no
authentication tag: a wrong password and a damaged file both surface as a
``CryptoError`` from the padding check, or decrypt to bytes the container
parser then rejects.

Both directions work through a bounded buffer (``STREAM_CHUNK_SIZE``), so
neither the plaintext nor the ciphertext has to be resident at once.
"""

from __future__ import annotations

import io
from typing import BinaryIO, Optional, Tuple, Union

try:  # pragma: no cover - optional dependency at runtime
    from Cryptodome.Cipher import AES  # type: ignore
    from Cryptodome.Hash import SHA512  # type: ignore
    from Cryptodome.Protocol.KDF import PBKDF2  # type: ignore
    from Cryptodome.Random import get_random_bytes  # type: ignore
    from Cryptodome.Util.Padding import pad, unpad  # type: ignore
    _HAS_CRYPTODOME = True
except ImportError:  # pragma: no cover - fallback
    AES = SHA512 = PBKDF2 = get_random_bytes = pad = unpad = None  # type: ignore
    _HAS_CRYPTODOME = False

from .constants import BLOCK_SIZE, IV_SIZE, KDF_ITERATIONS, KDF_SALT, KEY_SIZE, STREAM_CHUNK_SIZE
from .errors import CryptoError


def _ensure_backend() -> None:
    if not _HAS_CRYPTODOME:
        raise RuntimeError("PyCryptodomex is required for riff pack encryption")


def _check_key(key: bytes) -> None:
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes for AES-256")


def derive_key(
    password: Union[str, bytes],
    salt: bytes = KDF_SALT,
    iterations: int = KDF_ITERATIONS,
    key_len: int = KEY_SIZE,
) -> bytes:
    """Derive the pack key with PBKDF2-HMAC-SHA512.

    Deterministic in all four inputs. Deliberately slow at the default
    iteration count.
    """
    _ensure_backend()
    if isinstance(password, str):
        password = password.encode("utf-8")
    if iterations < 1:
        raise ValueError("iterations must be positive")
    return PBKDF2(password, salt, dkLen=key_len, count=iterations, hmac_hash_module=SHA512)


class EncryptingWriter(io.RawIOBase):
    """Write-only stream that encrypts into ``dst``.

    Input is encrypted in ``chunk_size`` pieces as it arrives and at most
    one partial chunk is buffered; it is padded and flushed on ``close()``.
    Leaving a ``with`` block on an exception aborts instead, so a failed
    stream never ends in a valid final block. The IV is exposed as ``iv``
    and is not written to ``dst``. Closing the writer does not close
    ``dst``.
    """

    def __init__(self, key: bytes, dst: BinaryIO, iv: Optional[bytes] = None, chunk_size: int = STREAM_CHUNK_SIZE):
        self._cipher = None
        self._pending = bytearray()
        super().__init__()
        _ensure_backend()
        _check_key(key)
        if iv is None:
            iv = get_random_bytes(IV_SIZE)
        if len(iv) != IV_SIZE:
            raise ValueError(f"IV must be {IV_SIZE} bytes")
        self.iv = iv
        self.dst = dst
        self.chunk_size = max(BLOCK_SIZE, chunk_size - chunk_size % BLOCK_SIZE)
        self.bytes_out = 0
        self._cipher = AES.new(key, AES.MODE_CBC, iv=iv)

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        if self.closed:
            raise ValueError("write to closed EncryptingWriter")
        view = memoryview(b).cast("B")
        n = len(view)
        pos = 0
        if self._pending:
            pos = min(n, self.chunk_size - len(self._pending))
            self._pending += view[:pos]
            if len(self._pending) < self.chunk_size:
                return n
            self._emit(self._cipher.encrypt(bytes(self._pending)))
            self._pending.clear()
        while n - pos >= self.chunk_size:
            self._emit(self._cipher.encrypt(view[pos : pos + self.chunk_size]))
            pos += self.chunk_size
        self._pending += view[pos:]
        return n

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.abort()
        else:
            self.close()

    def abort(self) -> None:
        """Close without padding or flushing the pending tail."""
        self._cipher = None
        self._pending.clear()
        self.close()

    def close(self) -> None:
        if self.closed:
            return
        try:
            if self._cipher is not None:
                self._emit(self._cipher.encrypt(pad(bytes(self._pending), BLOCK_SIZE, style="pkcs7")))
            self._pending.clear()
        finally:
            super().close()

    def _emit(self, data: bytes) -> None:
        self.dst.write(data)
        self.bytes_out += len(data)


def encrypt_stream(
    key: bytes,
    src: BinaryIO,
    dst: BinaryIO,
    *,
    iv: Optional[bytes] = None,
    chunk_size: int = STREAM_CHUNK_SIZE,
) -> Tuple[bytes, int]:
    """Encrypt ``src`` into ``dst``; returns (iv, ciphertext length)."""
    with EncryptingWriter(key, dst, iv=iv, chunk_size=chunk_size) as w:
        while True:
            chunk = src.read(chunk_size)
            if not chunk:
                break
            w.write(chunk)
    return w.iv, w.bytes_out


def decrypt_stream(
    key: bytes,
    iv: bytes,
    src: BinaryIO,
    dst: BinaryIO,
    *,
    chunk_size: int = STREAM_CHUNK_SIZE,
) -> int:
    """Decrypt ``src`` into ``dst``; returns the plaintext length.

    The final block is held back until the end of input so its padding can
    be checked. Raises ``CryptoError`` on a bad length or bad padding.
    """
    _ensure_backend()
    _check_key(key)
    if len(iv) != IV_SIZE:
        raise CryptoError(f"IV must be {IV_SIZE} bytes")
    cipher = AES.new(key, AES.MODE_CBC, iv=iv)
    held = b""
    total = 0
    while True:
        chunk = src.read(chunk_size)
        if not chunk:
            break
        buf = held + chunk
        n = len(buf) - len(buf) % BLOCK_SIZE
        if n == len(buf):
            n -= BLOCK_SIZE
        if n > 0:
            out = cipher.decrypt(buf[:n])
            dst.write(out)
            total += len(out)
        held = buf[n:]
    if len(held) != BLOCK_SIZE:
        raise CryptoError("Ciphertext length is not a positive multiple of the block size")
    try:
        tail = unpad(cipher.decrypt(held), BLOCK_SIZE, style="pkcs7")
    except ValueError as exc:
        raise CryptoError("Decryption failed: wrong password or corrupted data") from exc
    dst.write(tail)
    return total + len(tail)


def encrypt(key: bytes, plaintext: bytes, *, iv: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    """Encrypt ``plaintext`` with a fresh random IV; returns (iv, ciphertext)."""
    out = io.BytesIO()
    iv, _ = encrypt_stream(key, io.BytesIO(plaintext), out, iv=iv)
    return iv, out.getvalue()


def decrypt(key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
    out = io.BytesIO()
    decrypt_stream(key, iv, io.BytesIO(ciphertext), out)
    return out.getvalue()


__all__ = [
    "derive_key",
    "encrypt",
    "decrypt",
    "encrypt_stream",
    "decrypt_stream",
    "EncryptingWriter",
    "_HAS_CRYPTODOME",
]
