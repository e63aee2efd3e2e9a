"""
Export utilities for compiled response plans.

Supports:
- Parquet format (primary)
- JSONL
- CSV
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Sequence

import pandas as pd

from .models import CompiledBatch, RowPayload


logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("parquet", "jsonl", "csv")


def _payload_record(payload: RowPayload) -> Dict:
    record: Dict = {"row_index": payload.row_index, "page_history": payload.page_history}
    for key, value in payload.answers.items():
        record[key] = json.dumps(value, ensure_ascii=False) if isinstance(value, list) else value
    return record


def plan_dataframe(payloads: Sequence[RowPayload]) -> pd.DataFrame:
    """One row per payload; multi-select answers are JSON-encoded lists."""
    records: List[Dict] = [_payload_record(p) for p in payloads]
    return pd.DataFrame(records)


def export_plan(batch: CompiledBatch, filepath: str, fmt: str = "parquet",
                compression: str = "snappy") -> str:
    """
    Write the compiled payloads to disk.

    Args:
        batch: Compiled batch
        filepath: Output file path
        fmt: "parquet", "jsonl" or "csv"
        compression: Parquet compression codec

    Returns:
        Path written
    """
    fmt = fmt.lower()
    if fmt not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported format {fmt!r}; expected one of {', '.join(SUPPORTED_FORMATS)}")

    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = plan_dataframe(batch.payloads)

    if fmt == "parquet":
        df.to_parquet(path, compression=compression, engine="pyarrow", index=False)
    elif fmt == "jsonl":
        df.to_json(path, orient="records", lines=True, force_ascii=False)
    else:
        df.to_csv(path, index=False)

    logger.info(f"Exported {len(df)} planned responses to {path}")
    return str(path)
