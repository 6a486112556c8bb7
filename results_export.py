"""
Write workspace results and optimized layouts to disk.

  workspace.json  WorkspaceResult.to_dict(), indent 2
  workspace.csv   one row per pose: x,y,z,rx,ry,rz,ok,reason (reachable rows first)
  layout.json     {"horn_length": .., "rod_length": ..}
"""

from __future__ import annotations

import csv
import json
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Optional

from workspace_types import Layout, WorkspaceResult

CSV_FIELDS = ["x", "y", "z", "rx", "ry", "rz", "ok", "reason"]


def result_to_rows(result: WorkspaceResult) -> List[Dict]:
    rows: List[Dict] = []
    for p in result.reachable:
        rows.append({**asdict(p), "ok": True, "reason": ""})
    for f in result.unreachable:
        rows.append({**asdict(f.pose), "ok": False, "reason": f.reason})
    return rows


def export_results(result: WorkspaceResult, path, fmt: Optional[str] = None) -> Path:
    """
    Write `result` as JSON or CSV. The format defaults to the file suffix.
    Returns the written path.
    """
    path = Path(path)
    fmt = (fmt or path.suffix.lstrip(".") or "json").lower()
    if fmt == "json":
        path.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
    elif fmt == "csv":
        with path.open("w", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=CSV_FIELDS)
            w.writeheader()
            for row in result_to_rows(result):
                w.writerow(row)
    else:
        raise ValueError(f"unsupported export format: {fmt!r} (expected 'json' or 'csv')")
    return path


def export_layout(layout: Layout, path) -> Path:
    path = Path(path)
    path.write_text(json.dumps(asdict(layout), indent=2, sort_keys=True), encoding="utf-8")
    return path
