from __future__ import annotations

import io
import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Tuple, Union

from .constants import (
    IV_SIZE,
    MANIFEST_NAME,
    PROJECT_NAME_PREFIX,
    PROJECT_NAME_SUFFIX,
    RENDER_DIR,
    new_riff_id,
)
from .container import ContainerWriter, open_container
from .discovery import riff_file_name
from .encryption import EncryptingWriter, decrypt_stream, derive_key
from .errors import FormatError, NotFoundError
from .manifest import decode_manifest, encode_manifest
from .models import Manifest, ManifestEntry, Project


@dataclass
class PackSummary:
    path: str
    iv: bytes
    riff_count: int
    ciphertext_len: int

    @property
    def total_len(self) -> int:
        return IV_SIZE + self.ciphertext_len


@dataclass
class UnpackedRiff:
    entry: ManifestEntry
    data: bytes = field(repr=False)


@dataclass
class UnpackedPack:
    manifest: Manifest
    riffs: List[UnpackedRiff] = field(default_factory=list)


def build_manifest(projects: Iterable[Project]) -> Tuple[Manifest, Dict[str, bytes]]:
    """Assign a fresh id to every riff.

    Returns the manifest and the id -> riff bytes mapping the container is
    built from. Ids are distinct within the returned manifest.
    """
    manifest = Manifest()
    payloads: Dict[str, bytes] = {}
    for project in projects:
        for riff in project.riffs:
            riff_id = new_riff_id()
            while riff_id in payloads:
                riff_id = new_riff_id()
            payloads[riff_id] = riff.data
            manifest.riffs.append(
                ManifestEntry(id=riff_id, bpm=project.bpm, index=riff.index, note=riff.note, status=riff.status)
            )
    return manifest, payloads


def container_entries(manifest: Manifest, payloads: Dict[str, bytes]) -> Iterator[Tuple[str, bytes]]:
    """Yield container entries: the manifest first, then riffs in manifest order."""
    yield MANIFEST_NAME, encode_manifest(manifest)
    for entry in manifest.riffs:
        try:
            data = payloads[entry.id]
        except KeyError:
            raise NotFoundError(f"no riff bytes for manifest id {entry.id!r}") from None
        yield entry.id, data


def write_pack(path: str, manifest: Manifest, payloads: Dict[str, bytes], key: bytes) -> PackSummary:
    """Write ``IV || ciphertext`` to ``path``.

    The container is written straight into the cipher, which writes straight
    into the file. On failure the partial file is left in place, without a
    central directory or final padded block, so it never reads as a complete
    pack.
    """
    with open(path, "wb") as fh:
        with EncryptingWriter(key, fh) as writer:
            # Nothing reaches fh before the first full chunk, so the IV leads
            fh.write(writer.iv)
            with ContainerWriter(writer) as cw:
                for name, data in container_entries(manifest, payloads):
                    cw.add(name, data)
    return PackSummary(path=path, iv=writer.iv, riff_count=len(manifest.riffs), ciphertext_len=writer.bytes_out)


def pack(projects: Iterable[Project], password: Union[str, bytes], path: str) -> PackSummary:
    manifest, payloads = build_manifest(projects)
    key = derive_key(password)
    return write_pack(path, manifest, payloads, key)


def _read_iv(fh) -> bytes:
    iv = fh.read(IV_SIZE)
    if len(iv) != IV_SIZE:
        raise FormatError("Pack file is shorter than its IV")
    return iv


def decrypt_pack_file(path: str, key: bytes, out_path: str) -> int:
    """Write the decrypted (still compressed) container of ``path`` to ``out_path``.

    Returns the number of bytes written.
    """
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(path, "rb") as src:
        iv = _read_iv(src)
        with open(out_path, "wb") as dst:
            return decrypt_stream(key, iv, src, dst)


def read_pack(path: str, key: bytes) -> bytes:
    """Return the decrypted container bytes of the pack at ``path``."""
    out = io.BytesIO()
    with open(path, "rb") as src:
        iv = _read_iv(src)
        decrypt_stream(key, iv, src, out)
    return out.getvalue()


def unpack_container(data: bytes) -> UnpackedPack:
    with open_container(data) as reader:
        names = reader.list_names()
        if MANIFEST_NAME not in names:
            raise FormatError(f"Container has no {MANIFEST_NAME}")
        manifest = decode_manifest(reader.read(MANIFEST_NAME))
        ids = manifest.ids()
        if len(set(ids)) != len(ids):
            raise FormatError("Manifest lists the same id more than once")
        missing = set(ids) - names
        if missing:
            raise NotFoundError(f"Manifest references {len(missing)} riff(s) missing from the container")
        by_id = {e.id: e for e in manifest.riffs}
        riffs = [UnpackedRiff(entry=by_id[name], data=reader.read(name)) for name in sorted(names & set(by_id))]
    return UnpackedPack(manifest=manifest, riffs=riffs)


def unpack(path: str, key: bytes) -> UnpackedPack:
    return unpack_container(read_pack(path, key))


def extract_riffs(unpacked: UnpackedPack, outdir: str) -> List[str]:
    """Write riffs back into a ``RiffCollection<BPM>BPM/Render`` tree under ``outdir``.

    Returns the written paths. Every destination is checked before anything
    is written; two riffs that map to the same file name raise FormatError.
    """
    targets: Dict[str, Tuple[str, UnpackedRiff]] = {}
    for riff in unpacked.riffs:
        e = riff.entry
        if "/" in e.note or "\\" in e.note:
            raise FormatError(f"Riff note may not contain path separators: {e.note!r}")
        render_dir = os.path.join(outdir, f"{PROJECT_NAME_PREFIX}{e.bpm}{PROJECT_NAME_SUFFIX}", RENDER_DIR)
        dst = os.path.join(render_dir, riff_file_name(e.bpm, e.index, e.note, e.status))
        key = os.path.normcase(dst)
        if key in targets:
            raise FormatError(f"Riffs {targets[key][1].entry.id!r} and {e.id!r} would both extract to {dst}")
        targets[key] = (dst, riff)

    written: List[str] = []
    for dst, riff in targets.values():
        os.makedirs(os.path.dirname(dst), exist_ok=True)
        with open(dst, "wb") as fh:
            fh.write(riff.data)
        written.append(dst)
    return written
