"""
Tests for the validation module - annotation and profile matrix checks.
"""

import pandas as pd
import pytest

import tpca_toolkit as tpk
from tpca_toolkit.preprocessing import ProfileMatrix
from tpca_toolkit.validation import (
    validate_annotation_columns,
    validate_profile_matrices,
    summarize_annotation_coverage,
)


class TestAnnotationColumns:

    def test_all_columns_present(self):
        annotation = pd.DataFrame(columns=["protein", "complex_id", "source"])

        validate_annotation_columns(annotation, ["protein", "complex_id"])

    def test_missing_column_names_it(self):
        annotation = pd.DataFrame(columns=["protein"])

        with pytest.raises(tpk.AnnotationError) as excinfo:
            validate_annotation_columns(annotation, ["protein", "complex_id"], "Complex annotation")

        assert "complex_id" in str(excinfo.value)
        assert "Complex annotation" in str(excinfo.value)


class TestProfileMatrices:

    def test_no_matrices(self):
        with pytest.raises(tpk.EmptyInputError):
            validate_profile_matrices([])

    def test_empty_matrix(self):
        empty = ProfileMatrix(pd.DataFrame(columns=["T37_mean.fc"], dtype=float), [37.0], "M")

        with pytest.raises(tpk.EmptyInputError, match="empty"):
            validate_profile_matrices([empty])

    def test_too_few_proteins(self):
        single = ProfileMatrix(pd.DataFrame([[1.0]], index=["A"]), [37.0], "M")

        with pytest.raises(tpk.EmptyInputError, match="at least 2"):
            validate_profile_matrices([single])

        validate_profile_matrices([single], min_proteins=1)

    def test_replicates_share_temperature_ramp(self):
        values = pd.DataFrame([[1.0, 0.5], [0.9, 0.4]], index=["A", "B"])
        rep1 = ProfileMatrix(values, [37.0, 41.0], "M")
        rep2 = ProfileMatrix(values.copy(), [37.0, 41.0], "M")
        shifted = ProfileMatrix(values.copy(), [37.0, 44.0], "M")
        shorter = ProfileMatrix(values[[0]], [37.0], "M")

        validate_profile_matrices([rep1, rep2])
        with pytest.raises(tpk.ProfileMatrixError, match="same temperature ramp"):
            validate_profile_matrices([rep1, shifted])
        with pytest.raises(tpk.ProfileMatrixError, match="same temperature ramp"):
            validate_profile_matrices([rep1, shorter])


class TestAnnotationCoverage:

    def test_covered_and_missing(self):
        coverage = summarize_annotation_coverage(["B", "A", "C", "A"], ["A", "B", "X"], verbose=False)

        assert coverage == {"covered": ["A", "B"], "missing": ["C"]}

    def test_empty_annotation(self):
        coverage = summarize_annotation_coverage([], ["A"], verbose=False)

        assert coverage == {"covered": [], "missing": []}


class TestErrorHierarchy:

    @pytest.mark.parametrize("error", [tpk.EmptyInputError, tpk.AnnotationError, tpk.ProfileMatrixError])
    def test_errors_carry_message(self, error):
        with pytest.raises(error, match="details"):
            raise error("details")
