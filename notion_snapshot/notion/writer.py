"""Write scan outputs to disk as versioned JSON and Markdown documents."""

import json
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .models import ScanResult
from .normalizer import NormalizedOutput

SCHEMA_VERSION = "1.0.0"
RAW_FILENAME = "notion_snapshot_extracted.json"
META_FILENAME = "scan_meta.json"

logger = logging.getLogger(__name__)


def prepare_output_dir(out_dir: Union[str, Path]) -> Path:
    """Remove and recreate the output directory."""
    path = Path(out_dir)
    shutil.rmtree(path, ignore_errors=True)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _write_json(path: Path, payload: Dict[str, Any]) -> Path:
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"schemaVersion": SCHEMA_VERSION, **payload}, f, indent=2, ensure_ascii=False)
    return path


def render_formula_audit(formulas: Dict[str, Dict[str, str]]) -> str:
    """
    Render formula expressions per database as a Markdown audit.

    Args:
        formulas: Database title -> property name -> expression

    Returns:
        Markdown text
    """
    lines = ["## 🧠 Formula Audit", ""]
    for database, fields in formulas.items():
        lines.append(f"- database: {database}")
        for name, code in fields.items():
            lines.append(f"  - field: {name}")
            lines.append("    - code: |")
            lines.extend(f"        {line}" for line in code.split("\n"))
            lines.append("")
    return "\n".join(lines) + "\n"


def write_outputs(
    result: ScanResult,
    normalized: NormalizedOutput,
    out_dir: Union[str, Path],
    finished_at: Optional[datetime] = None,
) -> List[Path]:
    """
    Write every output document of a scan.

    The directory is cleared first, so call this only after the root
    resolved.

    Args:
        result: Raw scan result
        normalized: Records derived from the result
        out_dir: Output directory
        finished_at: Completion time recorded in scan_meta.json

    Returns:
        Paths of the written files
    """
    path = prepare_output_dir(out_dir)
    finished_at = finished_at or datetime.now(timezone.utc)

    written = [
        _write_json(path / RAW_FILENAME, result.to_dict()),
        _write_json(path / "pages.json", {"pages": normalized.pages}),
        _write_json(path / "databases.json", {"databases": normalized.databases}),
        _write_json(path / "media.json", {"images": normalized.media}),
        _write_json(path / "graph.json", normalized.graph),
        _write_json(path / "formulas.json", {"formulas": normalized.formulas}),
    ]

    audit_path = path / "formulas_audit.md"
    audit_path.write_text(render_formula_audit(normalized.formulas), encoding="utf-8")
    written.append(audit_path)

    if result.comments is not None:
        written.append(_write_json(path / "comments.json", {"comments": result.comments}))

    written.append(
        _write_json(
            path / META_FILENAME,
            {
                "snapshotKey": result.root_id,
                "rootType": result.root_kind.value,
                "rootTitle": result.root_title,
                "finishedAt": finished_at.isoformat(),
                "stats": result.stats.to_dict(),
            },
        )
    )

    logger.info(f"Wrote {len(written)} files to {path}")
    return written
