"""Readers for the expression matrix and clinical survival files."""

import numpy as np
import pandas as pd

from ..exceptions import InvalidDataError
from .validation import validate_expression_matrix

EVENT_WORDS = {
    "DEAD": True, "DECEASED": True, "1": True, "TRUE": True, "1:DECEASED": True,
    "ALIVE": False, "LIVING": False, "0": False, "FALSE": False, "0:LIVING": False,
}


def load_expression_matrix(file_path, sep="\t"):
    """
    Load a normalized expression matrix.

    Args:
        file_path: Text matrix with probe IDs in the first column and one
            column per sample
        sep: Field separator

    Returns:
        pd.DataFrame: probes x samples, float64
    """
    print(f"\n[Loading] {file_path}...")
    df = pd.read_csv(file_path, sep=sep, index_col=0, low_memory=False)
    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)

    coerced = df.apply(pd.to_numeric, errors="coerce")
    bad = int(coerced.isna().sum().sum() - df.isna().sum().sum())
    if bad > 0:
        raise InvalidDataError(f"{file_path}: {bad} non-numeric expression values")

    matrix = validate_expression_matrix(coerced, name=str(file_path))
    print(f"    Loaded: {matrix.shape[0]:,} probes, {matrix.shape[1]:,} samples")
    return matrix


def _parse_event(value):
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if pd.isna(value):
        return np.nan
    key = str(value).strip().upper()
    if key in EVENT_WORDS:
        return EVENT_WORDS[key]
    try:
        number = float(key)
    except ValueError:
        raise InvalidDataError(f"Unrecognized survival event value: {value!r}") from None
    if number in (0.0, 1.0):
        return bool(number)
    raise InvalidDataError(f"Unrecognized survival event value: {value!r}")


def load_clinical_data(file_path, sep="\t", id_col="sample_id", time_col="OS_time",
                       event_col="OS_event"):
    """
    Load clinical survival data.

    Args:
        file_path: Table with one row per sample
        sep: Field separator
        id_col, time_col, event_col: Source column names; renamed to
            sample_id, OS_time, OS_event

    Returns:
        pd.DataFrame with columns sample_id, OS_time (months), OS_event (bool);
        rows without survival values keep NaN and are dropped at merge time
    """
    print(f"\n[Loading] Clinical data from {file_path}...")
    clinical = pd.read_csv(file_path, sep=sep, low_memory=False)

    missing = [c for c in (id_col, time_col, event_col) if c not in clinical.columns]
    if missing:
        raise InvalidDataError(f"Clinical file missing columns: {missing}")

    clinical = clinical.rename(columns={id_col: "sample_id", time_col: "OS_time",
                                        event_col: "OS_event"})
    clinical = clinical[["sample_id", "OS_time", "OS_event"]].copy()
    clinical["sample_id"] = clinical["sample_id"].astype(str)
    clinical["OS_time"] = pd.to_numeric(clinical["OS_time"], errors="coerce")
    clinical["OS_event"] = clinical["OS_event"].map(_parse_event)

    n_complete = int(clinical[["OS_time", "OS_event"]].notna().all(axis=1).sum())
    print(f"    Samples: {len(clinical)} ({n_complete} with complete survival data)")
    return clinical
