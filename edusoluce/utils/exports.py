from __future__ import annotations

import io
import json

import pandas as pd

from ..infrastructure.exceptions import ExportError

EXPORT_COLUMNS = [
    "assessment_type",
    "assessment_id",
    "area_id",
    "area_title",
    "current_level",
    "score",
    "gap_indicators",
    "remediation_actions",
    "completed_at",
]


def _to_iso(val):
    if hasattr(val, "isoformat"):
        return val.isoformat()
    return val


def _prepare(results_df: pd.DataFrame | None) -> pd.DataFrame:
    if results_df is None:
        results_df = pd.DataFrame(columns=EXPORT_COLUMNS)
    frame = results_df.copy()
    for column in EXPORT_COLUMNS:
        if column not in frame.columns:
            frame[column] = pd.NA
    return frame[EXPORT_COLUMNS]


def make_json_export_payload(user_id: str, results_df: pd.DataFrame | None) -> str:
    frame = _prepare(results_df)
    payload = {
        "user_id": user_id,
        "results": frame.map(_to_iso).to_dict(orient="records"),
    }
    try:
        return json.dumps(payload, indent=2, ensure_ascii=False, default=str)
    except (TypeError, ValueError) as e:
        raise ExportError(f"Could not serialise results: {e}", export_format="json") from e


def make_xlsx_export_bytes(results_df: pd.DataFrame | None) -> bytes:
    """Single-sheet workbook, one row per stored area result."""
    frame = _prepare(results_df)

    # Lists and mappings do not fit a cell; flatten them to readable text.
    frame["gap_indicators"] = frame["gap_indicators"].map(
        lambda v: "; ".join(v) if isinstance(v, (list, tuple)) else v
    )
    frame["remediation_actions"] = frame["remediation_actions"].map(
        lambda v: "\n".join(f"{k}: {t}" for k, t in v.items()) if isinstance(v, dict) else v
    )

    bio = io.BytesIO()
    try:
        with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
            frame.to_excel(writer, index=False, sheet_name="Results")
    except Exception as e:
        raise ExportError(f"Could not build workbook: {e}", export_format="xlsx") from e
    return bio.getvalue()
