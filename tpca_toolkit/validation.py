"""
Data Validation Module for the TPCA Toolkit

Exceptions and validators for profile matrices and interaction annotations,
with interpretable error messages when inputs cannot be analysed.
"""

import pandas as pd
import numpy as np
from typing import Dict, List, Sequence


class EmptyInputError(Exception):
    """Raised when there is nothing left to test (no proteins, complexes or pairs)."""
    def __init__(self, message):
        super().__init__(message)


class AnnotationError(Exception):
    """Custom exception for malformed complex or PPI annotation tables."""
    def __init__(self, message):
        super().__init__(message)


class ProfileMatrixError(Exception):
    """Custom exception for profile matrices violating their invariants."""
    def __init__(self, message):
        super().__init__(message)


def validate_annotation_columns(
    annotation: pd.DataFrame,
    required_columns: Sequence[str],
    annotation_name: str = "annotation",
) -> None:
    """
    Check that an annotation table carries the columns an analysis step needs.

    Parameters:
    -----------
    annotation : pd.DataFrame
        Complex or PPI annotation table
    required_columns : Sequence[str]
        Columns that must be present
    annotation_name : str
        Name used in the error message

    Raises:
    -------
    AnnotationError if any column is missing
    """
    missing = [col for col in required_columns if col not in annotation.columns]
    if missing:
        raise AnnotationError(
            f"{annotation_name} is missing required columns: {missing}. "
            f"Available columns: {list(annotation.columns)}"
        )


def validate_profile_matrices(matrices: Sequence, min_proteins: int = 2) -> None:
    """
    Validate a set of profile matrices before distance computation.

    All matrices of one condition must be measured along the same temperature
    ramp and must contain enough proteins to draw random pairs.
    """
    if len(matrices) == 0:
        raise EmptyInputError("No profile matrices supplied")

    for i, matrix in enumerate(matrices):
        if matrix.values.empty:
            raise EmptyInputError(
                f"Profile matrix {i} ({matrix.condition or 'unnamed'}) is empty - "
                "check the quality filter thresholds"
            )
        if len(matrix.values) < min_proteins:
            raise EmptyInputError(
                f"Profile matrix {i} ({matrix.condition or 'unnamed'}) has only "
                f"{len(matrix.values)} proteins, need at least {min_proteins}"
            )

    reference = np.asarray(matrices[0].temperatures, dtype=float)
    for i, matrix in enumerate(matrices[1:], start=1):
        temperatures = np.asarray(matrix.temperatures, dtype=float)
        if len(temperatures) != len(reference) or not np.allclose(temperatures, reference):
            raise ProfileMatrixError(
                f"Profile matrix {i} ({matrix.condition or 'unnamed'}) is measured at "
                f"{temperatures.tolist()}, matrix 0 at {reference.tolist()}; replicates of one "
                "condition need the same temperature ramp"
            )


def summarize_annotation_coverage(
    annotated_proteins: Sequence[str],
    measured_proteins: Sequence[str],
    verbose: bool = True,
) -> Dict[str, List[str]]:
    """
    Report how many annotated proteins were actually measured.

    Returns:
    --------
    Dict with 'covered' and 'missing' protein lists
    """
    measured = set(measured_proteins)
    annotated = sorted(set(annotated_proteins))
    covered = [p for p in annotated if p in measured]
    missing = [p for p in annotated if p not in measured]

    if verbose:
        total = len(annotated)
        pct = (len(covered) / total * 100) if total else 0.0
        print(f"Annotation coverage: {len(covered)}/{total} proteins measured ({pct:.1f}%)")

    return {"covered": covered, "missing": missing}
