"""Loading of per-record BLTS samples and instrument configuration."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from .demux import N_BLTS

logger = logging.getLogger(__name__)

BLTS_COLUMNS = tuple(f"bias_{i}" for i in range(1, N_BLTS + 1))
REQUIRED_COLUMNS = {"mux_set", "diff_gain", *BLTS_COLUMNS}
OPTIONAL_COLUMNS = {"dlr_using_12"}


@dataclass(frozen=True)
class RecordData:
    """Continuous-waveform records, one sample per BLTS channel and record."""

    dataframe: pd.DataFrame
    mux_set: np.ndarray
    diff_gain: np.ndarray
    dlr_using_12: Optional[np.ndarray]
    blts: Tuple[np.ndarray, ...]

    def __len__(self) -> int:
        return int(self.mux_set.size)


def load_records_csv(path: str | Path) -> RecordData:
    """Load records from *path*.

    Parameters
    ----------
    path:
        CSV file with `mux_set`, `diff_gain`, `bias_1` .. `bias_5` and an
        optional `dlr_using_12` column (0/1 or true/false). Empty cells in
        the configuration columns mean unknown configuration (NaN).

    Returns
    -------
    RecordData
        Arrays in file order; `dlr_using_12` is None when the column is absent.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)

    df = pd.read_csv(path)
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {sorted(missing)}")

    df = df.reset_index(drop=True)
    mux_set = pd.to_numeric(df["mux_set"], errors="raise").to_numpy(dtype=float)
    diff_gain = pd.to_numeric(df["diff_gain"], errors="raise").to_numpy(dtype=float)
    blts = tuple(pd.to_numeric(df[col], errors="raise").to_numpy(dtype=float) for col in BLTS_COLUMNS)

    dlr = None
    if "dlr_using_12" in df.columns:
        dlr = _parse_flags(df["dlr_using_12"])

    n_unknown = int(np.count_nonzero(np.isnan(mux_set)))
    logger.debug("Loaded %d records from %s (%d with unknown mux mode)", len(df), path, n_unknown)
    return RecordData(dataframe=df, mux_set=mux_set, diff_gain=diff_gain, dlr_using_12=dlr, blts=blts)


def _parse_flags(column: pd.Series) -> np.ndarray:
    if column.isna().any():
        raise ValueError("dlr_using_12 may not contain empty cells")
    if column.dtype == bool:
        return column.to_numpy(dtype=bool)
    text = column.astype(str).str.strip().str.lower()
    mapping = {"1": True, "true": True, "0": False, "false": False, "1.0": True, "0.0": False}
    unknown = sorted(set(text) - set(mapping))
    if unknown:
        raise ValueError(f"Cannot interpret dlr_using_12 values {unknown}")
    return text.map(mapping).to_numpy(dtype=bool)
