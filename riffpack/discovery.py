from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .constants import PROJECT_NAME_PATTERN, PROJECT_NAME_PREFIX, RENDER_DIR, RIFF_NAME_PATTERN, RIFF_SUFFIX
from .errors import DiscoveryError
from .models import Project, Riff, RiffStatus


_PROJECT_RE = re.compile(PROJECT_NAME_PATTERN)
_RIFF_RE = re.compile(RIFF_NAME_PATTERN)


@dataclass
class ScanResult:
    projects: List[Project] = field(default_factory=list)
    errors: List[DiscoveryError] = field(default_factory=list)

    @property
    def riff_count(self) -> int:
        return sum(len(p.riffs) for p in self.projects)


def parse_project_bpm(name: str) -> Optional[int]:
    """Return the BPM encoded in a project directory name, or None."""
    m = _PROJECT_RE.match(name)
    if not m:
        return None
    return int(m.group(1))


def parse_riff_name(stem: str) -> Optional[tuple[int, str, RiffStatus]]:
    """Parse ``<n>~<index>~<note>~<status>`` into (index, note, status).

    Returns None when the stem does not match. Raises ValueError for a
    status digit outside the known statuses.
    """
    m = _RIFF_RE.match(stem)
    if not m:
        return None
    index = int(m.group(2))
    note = m.group(3)
    status_str = m.group(4)
    status = RiffStatus.NONE if not status_str else RiffStatus(int(status_str))
    return index, note, status


def riff_file_name(bpm: int, index: int, note: str, status: RiffStatus) -> str:
    """Inverse of ``parse_riff_name``; NONE is written as an empty field."""
    status_str = "" if status == RiffStatus.NONE else str(int(status))
    return f"{bpm}~{index}~{note}~{status_str}{RIFF_SUFFIX}"


def _scan_riffs(render_dir: str, result: ScanResult) -> List[Riff]:
    riffs: List[Riff] = []
    seen: Dict[tuple[int, str, RiffStatus], str] = {}
    for fn in sorted(os.listdir(render_dir)):
        full = os.path.join(render_dir, fn)
        if not fn.lower().endswith(RIFF_SUFFIX) or not os.path.isfile(full):
            continue
        stem = fn[: -len(RIFF_SUFFIX)]
        try:
            parsed = parse_riff_name(stem)
        except ValueError:
            result.errors.append(DiscoveryError(full, "Unknown riff status"))
            continue
        if parsed is None:
            result.errors.append(DiscoveryError(full, "Could not parse riff data"))
            continue
        index, note, status = parsed
        # The leading field is not kept, so these would extract to one file
        if parsed in seen:
            result.errors.append(DiscoveryError(full, f"Same index, note and status as {seen[parsed]}"))
            continue
        seen[parsed] = fn
        try:
            with open(full, "rb") as fh:
                data = fh.read()
        except OSError as exc:
            result.errors.append(DiscoveryError(full, f"Could not read riff: {exc}"))
            continue
        riffs.append(Riff(index=index, note=note, status=status, data=data))
    return riffs


def scan_projects(root: str) -> ScanResult:
    """Find ``RiffCollection<BPM>BPM`` projects under ``root`` and load their riffs.

    Problems with individual projects or riffs are collected in
    ``ScanResult.errors`` and the item is skipped. A missing ``root`` is not
    recoverable and raises FileNotFoundError.
    """
    if not os.path.isdir(root):
        raise FileNotFoundError(f"Projects directory does not exist: {root}")
    result = ScanResult()
    seen: Dict[int, str] = {}
    for name in sorted(os.listdir(root)):
        project_dir = os.path.join(root, name)
        if not os.path.isdir(project_dir):
            continue
        if not name.startswith(PROJECT_NAME_PREFIX):
            continue
        bpm = parse_project_bpm(name)
        if bpm is None:
            result.errors.append(DiscoveryError(project_dir, "Could not determine project BPM"))
            continue
        if bpm <= 0:
            result.errors.append(DiscoveryError(project_dir, "BPM must be a positive number"))
            continue
        if bpm in seen:
            result.errors.append(DiscoveryError(project_dir, f"BPM {bpm} already used by {seen[bpm]}"))
            continue
        render_dir = os.path.join(project_dir, RENDER_DIR)
        if not os.path.isdir(render_dir):
            result.errors.append(DiscoveryError(project_dir, f"'{RENDER_DIR}' directory could not be found"))
            continue
        try:
            riffs = _scan_riffs(render_dir, result)
        except OSError as exc:
            result.errors.append(DiscoveryError(render_dir, f"Could not list riffs: {exc}"))
            continue
        seen[bpm] = project_dir
        result.projects.append(Project(bpm=bpm, riffs=riffs))
    return result
