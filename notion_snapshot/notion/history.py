"""Snapshots of scan outputs and diffs between consecutive snapshots."""

import difflib
import json
import logging
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Union

from .writer import META_FILENAME

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
SNAPSHOT_PATTERN = re.compile(r"\d{8}_\d{6}")
# Keys whose values change on every run
VOLATILE_KEYS = frozenset({"expiry_time", "finishedAt"})
URL_QUERY = re.compile(r"(https?://[^\s'\"?]+)\?[^\s'\"]*")

PathLike = Union[str, Path]

logger = logging.getLogger(__name__)


class HistoryError(Exception):
    """Raised when there is no scan output to snapshot or compare."""


def read_snapshot_key(outputs_dir: PathLike) -> str:
    """
    Read the snapshot key written by the last scan.

    Raises:
        HistoryError: If scan_meta.json is missing or has no key
    """
    meta_path = Path(outputs_dir) / META_FILENAME
    try:
        with open(meta_path, "r", encoding="utf-8") as f:
            meta = json.load(f)
    except (OSError, ValueError):
        meta = None
    if not isinstance(meta, dict) or not meta.get("snapshotKey"):
        raise HistoryError(f"No {META_FILENAME} found. Run a scan first.")
    return meta["snapshotKey"]


def _json_files(directory: Path) -> List[str]:
    if not directory.is_dir():
        return []
    return sorted(p.name for p in directory.iterdir() if p.suffix == ".json")


def list_snapshots(directory: PathLike) -> List[str]:
    """Timestamped snapshot directory names, oldest first."""
    path = Path(directory)
    if not path.is_dir():
        return []
    return sorted(p.name for p in path.iterdir() if p.is_dir() and SNAPSHOT_PATTERN.search(p.name))


def snap(
    outputs_dir: PathLike, history_dir: PathLike, now: Optional[datetime] = None
) -> Path:
    """
    Copy the current JSON outputs into a new timestamped snapshot.

    Args:
        outputs_dir: Directory the scan wrote to
        history_dir: Root of the snapshot history
        now: Snapshot time (defaults to the current local time)

    Returns:
        Path of the snapshot directory
    """
    key = read_snapshot_key(outputs_dir)
    timestamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    target = Path(history_dir) / key / timestamp
    target.mkdir(parents=True, exist_ok=True)

    source = Path(outputs_dir)
    for name in _json_files(source):
        shutil.copyfile(source / name, target / name)

    logger.info(f"Snapshot: {key}/{timestamp}")
    return target


def _scrub(value: Any) -> Any:
    if isinstance(value, list):
        return [_scrub(v) for v in value]
    if isinstance(value, dict):
        return {k: _scrub(v) for k, v in value.items() if k not in VOLATILE_KEYS}
    if isinstance(value, str) and re.match(r"^https?://", value) and "?" in value:
        return value.split("?", 1)[0]
    return value


def sanitize_for_diff(text: str) -> str:
    """
    Remove run-specific noise before diffing.

    Drops volatile keys and strips query strings from URLs (signed
    file URLs change on every request). Text that isn't JSON is
    scrubbed line by line.
    """
    try:
        data = json.loads(text)
    except ValueError:
        return "\n".join(URL_QUERY.sub(r"\1", line) for line in text.split("\n"))
    return json.dumps(_scrub(data), indent=2, ensure_ascii=False)


def diff_latest(outputs_dir: PathLike, history_dir: PathLike) -> Optional[List[str]]:
    """
    Compare the two most recent snapshots of the current scan key.

    Returns:
        Report chunks (empty when nothing changed), or None when fewer
        than two snapshots exist
    """
    key = read_snapshot_key(outputs_dir)
    root = Path(history_dir) / key
    snapshots = list_snapshots(root)
    if len(snapshots) < 2:
        return None

    old_dir, new_dir = root / snapshots[-2], root / snapshots[-1]
    old_files, new_files = set(_json_files(old_dir)), set(_json_files(new_dir))

    report: List[str] = []
    for name in sorted(old_files | new_files):
        if name not in old_files:
            report.append(f"[+] {name} added")
            continue
        if name not in new_files:
            report.append(f"[-] {name} removed")
            continue
        old_text = sanitize_for_diff((old_dir / name).read_text(encoding="utf-8"))
        new_text = sanitize_for_diff((new_dir / name).read_text(encoding="utf-8"))
        if old_text != new_text:
            diff = difflib.unified_diff(
                old_text.split("\n"),
                new_text.split("\n"),
                fromfile=f"a/{name}",
                tofile=f"b/{name}",
                lineterm="",
            )
            report.append(f"# {name}\n" + "\n".join(diff))
    return report


def latest_scan_dir(scans_dir: PathLike) -> Optional[str]:
    """Name of the most recently modified subdirectory, or None."""
    path = Path(scans_dir)
    if not path.is_dir():
        return None
    directories = [p for p in path.iterdir() if p.is_dir()]
    if not directories:
        return None
    return max(directories, key=lambda p: p.stat().st_mtime).name
