"""JSON codec for the pack manifest.

The manifest is stored as one UTF-8 JSON document::

    {"Riffs": [{"Id": "...", "BPM": 120, "Index": 1, "Note": "A", "Status": 0}, ...]}

Key order inside a record is irrelevant on decode; every key is required.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from .errors import ManifestFormatError
from .models import Manifest, ManifestEntry, RiffStatus


_RIFFS_KEY = "Riffs"
_ID_KEY = "Id"
_BPM_KEY = "BPM"
_INDEX_KEY = "Index"
_NOTE_KEY = "Note"
_STATUS_KEY = "Status"


def _entry_to_dict(entry: ManifestEntry) -> Dict[str, Any]:
    return {
        _ID_KEY: entry.id,
        _BPM_KEY: entry.bpm,
        _INDEX_KEY: entry.index,
        _NOTE_KEY: entry.note,
        _STATUS_KEY: int(entry.status),
    }


def encode_manifest(manifest: Manifest) -> bytes:
    doc = {_RIFFS_KEY: [_entry_to_dict(e) for e in manifest.riffs]}
    return json.dumps(doc, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def _require(record: Dict[str, Any], key: str, kind: type, pos: int):
    if key not in record:
        raise ManifestFormatError(f"manifest record {pos} is missing '{key}'")
    val = record[key]
    # bool is an int subclass; reject it for numeric fields
    if not isinstance(val, kind) or (kind is int and isinstance(val, bool)):
        raise ManifestFormatError(f"manifest record {pos}: '{key}' must be {kind.__name__}")
    return val


def _entry_from_dict(record: Any, pos: int) -> ManifestEntry:
    if not isinstance(record, dict):
        raise ManifestFormatError(f"manifest record {pos} is not an object")
    status = _require(record, _STATUS_KEY, int, pos)
    try:
        status = RiffStatus(status)
    except ValueError as exc:
        raise ManifestFormatError(f"manifest record {pos}: unknown status {status}") from exc
    return ManifestEntry(
        id=_require(record, _ID_KEY, str, pos),
        bpm=_require(record, _BPM_KEY, int, pos),
        index=_require(record, _INDEX_KEY, int, pos),
        note=_require(record, _NOTE_KEY, str, pos),
        status=status,
    )


def decode_manifest(blob: bytes) -> Manifest:
    try:
        doc = json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ManifestFormatError(f"manifest is not valid UTF-8 JSON: {exc}") from exc
    if not isinstance(doc, dict) or _RIFFS_KEY not in doc:
        raise ManifestFormatError(f"manifest must be an object with a '{_RIFFS_KEY}' list")
    records = doc[_RIFFS_KEY]
    if not isinstance(records, list):
        raise ManifestFormatError(f"manifest '{_RIFFS_KEY}' must be a list")
    return Manifest(riffs=[_entry_from_dict(r, i) for i, r in enumerate(records)])
