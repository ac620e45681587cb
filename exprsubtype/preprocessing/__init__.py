"""Input loading and validation for expression and clinical data."""

from .data_loader import load_clinical_data, load_expression_matrix
from .validation import as_expression_frame, validate_expression_matrix

__all__ = [
    'load_clinical_data',
    'load_expression_matrix',
    'as_expression_frame',
    'validate_expression_matrix',
]
