"""
Input checks shared by every pipeline stage.

The expression matrix arrives already normalized; the core only confirms it
is a finite numeric table with unique probe and sample identifiers.
"""

import numpy as np
import pandas as pd

from ..exceptions import InvalidDataError


def validate_expression_matrix(matrix, name="expression matrix"):
    """
    Check that ``matrix`` is a usable ExpressionMatrix.

    Args:
        matrix: DataFrame with probes as rows and samples as columns
        name: Label used in error messages

    Returns:
        pd.DataFrame: The same matrix, as float64

    Raises:
        InvalidDataError: If the matrix is empty, has duplicated identifiers,
            non-numeric columns or non-finite values
    """
    if not isinstance(matrix, pd.DataFrame):
        raise InvalidDataError(f"{name} must be a pandas DataFrame, got {type(matrix).__name__}")

    if matrix.shape[0] == 0 or matrix.shape[1] == 0:
        raise InvalidDataError(f"{name} is empty (shape={matrix.shape})")

    if matrix.index.has_duplicates:
        dupes = matrix.index[matrix.index.duplicated()].unique().tolist()
        raise InvalidDataError(f"{name} has duplicated probe IDs: {dupes[:5]}")

    if matrix.columns.has_duplicates:
        dupes = matrix.columns[matrix.columns.duplicated()].unique().tolist()
        raise InvalidDataError(f"{name} has duplicated sample IDs: {dupes[:5]}")

    non_numeric = [col for col, dtype in matrix.dtypes.items()
                   if not pd.api.types.is_numeric_dtype(dtype)
                   or pd.api.types.is_bool_dtype(dtype)]
    if non_numeric:
        raise InvalidDataError(f"{name} has non-numeric sample columns: {non_numeric[:5]}")

    values = matrix.to_numpy(dtype=np.float64)
    if not np.isfinite(values).all():
        bad = int((~np.isfinite(values)).sum())
        raise InvalidDataError(f"{name} contains {bad} NaN/infinite values")

    return matrix.astype(np.float64)


def as_expression_frame(matrix):
    """Accept a RankedMatrix or a DataFrame and return the validated DataFrame."""
    if not isinstance(matrix, pd.DataFrame) and hasattr(matrix, "data"):
        matrix = matrix.data
    return validate_expression_matrix(matrix)
