#!/usr/bin/env python3
"""
Dev-only: read bench calibration captures from an Excel workbook and emit a draft JSON.
Usage: python tools/import_points_xlsx.py captures.xlsx [out.json]
Sheets are named after curves (v_local, v_remote, current_ch1, current_ch2). Columns are
found by header: Raw, Measured (mV or mA), and DAC for current sheets.
Requires: openpyxl (pip install openpyxl or use the tools extra).
"""

import json
import logging
import sys
from pathlib import Path

from pyloadlynx import CurrentPoint, CurveKind, Draft, VoltagePoint
from pyloadlynx.errors import PreconditionError

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def find_header_row(rows: list[tuple], hint: str = "RAW") -> int:
    """Return 0-based row index of the header containing a raw-like column."""
    for i, row in enumerate(rows):
        for cell in row:
            if cell and hint in str(cell).upper():
                return i
    return 0


def find_columns(header: list[str]) -> tuple[int | None, int | None, int | None]:
    """(raw, dac, measured) column indices from an uppercased header row."""
    raw_col = dac_col = meas_col = None
    for j, h in enumerate(header):
        if "DAC" in h:
            dac_col = j
        elif "RAW" in h:
            raw_col = j
        elif "MEAS" in h or h in ("MV", "MA"):
            meas_col = j
    return raw_col, dac_col, meas_col


def cell_int(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return int(f) if f.is_integer() else None


def parse_sheet(rows: list[tuple], kind: CurveKind) -> list:
    """Parse one curve sheet; rows with a missing or non-integer cell are skipped with a warning."""
    points: list = []
    if not rows:
        return points
    header_idx = find_header_row(rows)
    header = [str(c).strip().upper() if c else "" for c in rows[header_idx]]
    raw_col, dac_col, meas_col = find_columns(header)
    if raw_col is None or meas_col is None or (kind.is_current and dac_col is None):
        logger.warning("Sheet %s: missing columns in header %s", kind.value, header)
        return points
    for i in range(header_idx + 1, len(rows)):
        row = rows[i]
        raw = cell_int(row[raw_col]) if len(row) > raw_col else None
        meas = cell_int(row[meas_col]) if len(row) > meas_col else None
        dac = cell_int(row[dac_col]) if kind.is_current and len(row) > dac_col else None
        if raw is None and meas is None:
            continue
        if raw is None or meas is None or (kind.is_current and dac is None):
            logger.warning("Sheet %s row %d: skipped (non-integer or empty cell)", kind.value, i + 1)
            continue
        if kind.is_current:
            points.append(CurrentPoint(raw=raw, dac_code=dac, measured_ma=meas))
        else:
            points.append(VoltagePoint(raw=raw, measured_mv=meas))
    return points


def sheet_rows(ws) -> list[tuple]:
    """Return all rows from worksheet as list of tuples (values only)."""
    return [tuple(cell.value for cell in row) for row in ws.iter_rows()]


def main() -> int:
    if len(sys.argv) < 2:
        logger.error("Usage: %s captures.xlsx [out.json]", sys.argv[0])
        return 1
    xlsx_path = Path(sys.argv[1])
    out_path = Path(sys.argv[2]) if len(sys.argv) > 2 else xlsx_path.with_suffix(".json")
    if not xlsx_path.exists():
        logger.error("No Excel file found: %s", xlsx_path)
        return 1
    try:
        import openpyxl
    except ImportError:
        logger.error("openpyxl required. Install with: pip install openpyxl")
        return 1

    wb = openpyxl.load_workbook(str(xlsx_path), data_only=True)
    draft = Draft()
    for sheet_name in wb.sheetnames:
        try:
            kind = CurveKind(sheet_name.strip().lower())
        except ValueError:
            logger.info("Skipping sheet %s", sheet_name)
            continue
        for point in parse_sheet(sheet_rows(wb[sheet_name]), kind):
            draft.capture(kind, point)
    wb.close()

    for issue in draft.validate():
        logger.warning("%s", issue)
    try:
        snapshot = draft.export_snapshot(device_id=xlsx_path.stem)
    except PreconditionError as e:
        logger.error("%s", e)
        return 1
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(snapshot, f, indent=2)
    logger.info("Wrote %s", out_path)
    for kind, points in draft.curves().items():
        logger.info("  %s: %d", kind.value, len(points))
    return 0


if __name__ == "__main__":
    sys.exit(main())
