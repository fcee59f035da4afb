"""
Tests for tpca_toolkit.statistical_analysis module
"""

import numpy as np
import pandas as pd
import pytest
from scipy.spatial.distance import pdist

from tpca_toolkit.annotation import expand_complexes_to_ppis
from tpca_toolkit.preprocessing import ProfileMatrix
from tpca_toolkit.statistical_analysis import (
    TPCAConfig,
    TPCAResult,
    make_rng,
    combine_replicates,
    apply_multiple_testing_correction,
    run_complex_coaggregation,
    run_ppi_coaggregation,
    compute_roc,
    run_tpca,
    run_differential_coaggregation,
    display_significant_results,
    summarize_tpca_result,
    _empirical_p_values,
    _random_pairs,
    _random_sets,
    _random_set_null,
    _mean_pairwise_distances,
    empty_diff_result,
    DIFF_RESULT_COLUMNS,
    DISTANCE_METRICS,
)
from tpca_toolkit.validation import AnnotationError, EmptyInputError, ProfileMatrixError

from conftest import MITOTIC_COMPLEX, STABLE_COMPLEX


class TestTPCAConfig:
    """Test the TPCAConfig class"""

    def test_config_initialization(self):
        config = TPCAConfig()

        assert config.n_samples == 10000
        assert config.min_complex_size == 3
        assert config.distance_metric == "euclidean"
        assert config.correction_method == "fdr_bh"
        assert config.p_adj_threshold == 0.1
        assert config.validate() is True

    @pytest.mark.parametrize("attribute,value", [
        ("n_samples", 0),
        ("min_complex_size", 1),
        ("distance_metric", "cosine"),
        ("p_adj_threshold", 0),
    ])
    def test_invalid_values(self, attribute, value):
        config = TPCAConfig()
        setattr(config, attribute, value)

        with pytest.raises(ValueError):
            config.validate()


class TestHelpers:
    """Test the permutation helpers"""

    def test_empirical_p_values(self):
        null = np.array([1.0, 2.0, 3.0, 4.0])

        p_values = _empirical_p_values(np.array([0.5, 2.0, 10.0]), null)

        np.testing.assert_allclose(p_values, [1 / 5, 3 / 5, 1.0])

    def test_random_pairs_are_distinct(self):
        first, second = _random_pairs(5, 1000, make_rng(1))

        assert (first != second).all()
        assert first.max() < 5 and second.max() < 5

    @pytest.mark.parametrize("n, size", [(5, 4), (100, 3)])
    def test_random_sets_have_distinct_members(self, n, size):
        sets = _random_sets(n, size, 2000, make_rng(3))

        assert sets.shape == (2000, size)
        assert sets.min() >= 0 and sets.max() < n
        assert all(len(set(row)) == size for row in sets.tolist())

    @pytest.mark.parametrize("metric", ["euclidean", "manhattan"])
    def test_block_distances_match_pdist(self, metric):
        values = make_rng(5).normal(size=(12, 6))
        sets = _random_sets(12, 4, 50, make_rng(6))

        expected = [pdist(values[row], metric=DISTANCE_METRICS[metric]).mean() for row in sets]

        np.testing.assert_allclose(_mean_pairwise_distances(values[sets], metric), expected)

    def test_random_set_null_in_small_blocks(self):
        values = make_rng(5).normal(size=(30, 4))

        whole = _random_set_null(values, 3, 250, "euclidean", make_rng(8))
        blocked = _random_set_null(values, 3, 250, "euclidean", make_rng(8), max_elements=100)

        assert whole.shape == blocked.shape == (250,)
        assert np.isfinite(blocked).all()
        # Same distribution whatever the block size
        assert abs(np.median(whole) - np.median(blocked)) < 0.5

    def test_same_seed_same_draws(self):
        assert (make_rng(7).integers(0, 100, 10) == make_rng(7).integers(0, 100, 10)).all()

    def test_correction_never_below_raw(self):
        results = pd.DataFrame({"p_value": [0.001, 0.02, 0.03, 0.5, 0.9]})

        corrected = apply_multiple_testing_correction(results)

        assert (corrected["p_adj"] >= corrected["p_value"]).all()
        assert (corrected["p_adj"] <= 1).all()

    def test_correction_none(self):
        results = pd.DataFrame({"p_value": [0.01, 0.2]})

        corrected = apply_multiple_testing_correction(results, method="none")

        assert list(corrected["p_adj"]) == [0.01, 0.2]

    def test_correction_of_empty_table(self):
        corrected = apply_multiple_testing_correction(pd.DataFrame({"p_value": []}))

        assert "p_adj" in corrected.columns
        assert corrected.empty


class TestCombineReplicates:

    def test_keeps_shared_proteins_in_first_order(self):
        rep1 = ProfileMatrix(pd.DataFrame([[1.0], [0.9], [0.8]], index=["A", "B", "C"]), [37.0])
        rep2 = ProfileMatrix(pd.DataFrame([[0.7], [0.6]], index=["C", "A"]), [37.0])

        combined = combine_replicates([rep1, rep2])

        assert list(combined.index) == ["A", "C"]
        assert combined.shape == (2, 2)
        assert combined.loc["A"].tolist() == [1.0, 0.6]

    def test_no_shared_protein(self):
        rep1 = ProfileMatrix(pd.DataFrame([[1.0]], index=["A"]), [37.0])
        rep2 = ProfileMatrix(pd.DataFrame([[1.0]], index=["B"]), [37.0])

        with pytest.raises(EmptyInputError):
            combine_replicates([rep1, rep2])

    def test_different_temperature_ramps(self):
        rep1 = ProfileMatrix(pd.DataFrame([[1.0, 0.5]], index=["A"]), [37.0, 41.0])
        rep2 = ProfileMatrix(pd.DataFrame([[1.0, 0.4]], index=["A"]), [37.0, 46.0])

        with pytest.raises(ProfileMatrixError):
            combine_replicates([rep1, rep2])


class TestComplexCoaggregation:
    """Test the complex-level permutation test"""

    def test_result_columns_and_filtering(self, stage_matrices, complex_annotation, small_config):
        results = run_complex_coaggregation(stage_matrices["M"], complex_annotation, small_config,
                                            make_rng(small_config.random_seed), verbose=False)

        assert list(results.columns) == ["complex_id", "count", "mean_distance", "p_value", "p_adj"]
        # Too small and unmeasured complexes are skipped
        assert set(results["complex_id"]) == {"CPX-STABLE", "CPX-MITOTIC", "CPX-RANDOM"}
        assert (results["count"] >= small_config.min_complex_size).all()
        assert (results["p_adj"] >= results["p_value"]).all()
        assert results["p_value"].is_monotonic_increasing

    def test_coaggregating_complexes(self, stage_matrices, complex_annotation, small_config):
        g1s = run_complex_coaggregation(stage_matrices["G1_S"], complex_annotation, small_config,
                                        make_rng(1), verbose=False).set_index("complex_id")
        m = run_complex_coaggregation(stage_matrices["M"], complex_annotation, small_config,
                                      make_rng(1), verbose=False).set_index("complex_id")

        assert g1s.loc["CPX-STABLE", "p_adj"] < 0.1
        assert m.loc["CPX-STABLE", "p_adj"] < 0.1
        assert m.loc["CPX-MITOTIC", "p_adj"] < 0.1
        assert g1s.loc["CPX-MITOTIC", "p_value"] > m.loc["CPX-MITOTIC", "p_value"]
        assert g1s.loc["CPX-MITOTIC", "mean_distance"] > m.loc["CPX-MITOTIC", "mean_distance"]

    def test_reproducible_with_same_seed(self, stage_matrices, complex_annotation, small_config):
        first = run_complex_coaggregation(stage_matrices["G1_S"], complex_annotation, small_config,
                                          make_rng(99), verbose=False)
        second = run_complex_coaggregation(stage_matrices["G1_S"], complex_annotation, small_config,
                                           make_rng(99), verbose=False)

        pd.testing.assert_frame_equal(first, second)

    def test_manhattan_distance(self, stage_matrices, complex_annotation, small_config):
        small_config.distance_metric = "manhattan"

        results = run_complex_coaggregation(stage_matrices["M"], complex_annotation, small_config,
                                            make_rng(1), verbose=False)

        assert results.set_index("complex_id").loc["CPX-STABLE", "p_adj"] < 0.1

    def test_no_testable_complex(self, stage_matrices, small_config):
        annotation = pd.DataFrame({"protein": ["GENE000", "GENE001"], "complex_id": ["X", "X"]})

        with pytest.raises(EmptyInputError):
            run_complex_coaggregation(stage_matrices["M"], annotation, small_config, verbose=False)

    def test_bad_annotation(self, stage_matrices, small_config):
        with pytest.raises(AnnotationError):
            run_complex_coaggregation(stage_matrices["M"], pd.DataFrame({"gene": ["A"]}),
                                      small_config, verbose=False)


class TestPpiCoaggregation:
    """Test the pair-level permutation test"""

    def test_interacting_pairs_are_significant(self, stage_matrices, ppi_annotation, small_config):
        results = run_ppi_coaggregation(stage_matrices["G1_S"], ppi_annotation, small_config,
                                        make_rng(5), verbose=False)

        assert list(results.columns[:6]) == ["pair", "x", "y", "distance", "p_value", "p_adj"]
        assert "combined_score" in results.columns
        assert results["pair"].is_unique
        stable = results[results["x"].isin(STABLE_COMPLEX)]
        assert len(stable) == 10
        assert (stable["p_adj"] < 0.2).all()
        assert (results["p_adj"] >= results["p_value"]).all()

    def test_unmeasured_pairs_only(self, stage_matrices, small_config):
        ppis = pd.DataFrame({"x": ["ABSENT1"], "y": ["ABSENT2"]})

        with pytest.raises(EmptyInputError):
            run_ppi_coaggregation(stage_matrices["M"], ppis, small_config, verbose=False)


class TestRoc:

    def test_annotated_pairs_beat_random(self, stage_matrices, complex_annotation, small_config):
        roc, auc_value = compute_roc(stage_matrices["M"], expand_complexes_to_ppis(complex_annotation),
                                     small_config, make_rng(3))

        assert list(roc.columns) == ["fpr", "tpr", "threshold"]
        assert roc["fpr"].is_monotonic_increasing
        assert 0.5 < auc_value <= 1.0


class TestRunTpca:
    """Test the per-condition entry point"""

    def test_complex_and_ppi(self, stage_matrices, complex_annotation, ppi_annotation, small_config):
        result = run_tpca(stage_matrices["M"], complex_annotation, ppi_annotation,
                          small_config, make_rng(11), verbose=False)

        assert isinstance(result, TPCAResult)
        assert result.condition == "M"
        assert result.complex_results is not None and result.ppi_results is not None
        assert result.complex_roc is not None and result.ppi_roc is not None
        assert 0 <= result.complex_auc <= 1

        summary = summarize_tpca_result(result)
        assert summary["complexes_tested"] == 3
        assert summary["ppis_tested"] == len(result.ppi_results)

    def test_without_roc(self, stage_matrices, complex_annotation, small_config):
        small_config.compute_roc = False

        result = run_tpca(stage_matrices["M"], complex_annotation=complex_annotation,
                          config=small_config, verbose=False)

        assert result.complex_roc is None
        assert result.ppi_results is None

    def test_requires_an_annotation(self, stage_matrices):
        with pytest.raises(ValueError):
            run_tpca(stage_matrices["M"], verbose=False)

    def test_same_seed_same_top_complex(self, stage_matrices, complex_annotation, small_config):
        first = run_tpca(stage_matrices["G1_S"], complex_annotation, config=small_config,
                         rng=make_rng(small_config.random_seed), verbose=False)
        second = run_tpca(stage_matrices["G1_S"], complex_annotation, config=small_config,
                          rng=make_rng(small_config.random_seed), verbose=False)

        pd.testing.assert_frame_equal(first.complex_results, second.complex_results)
        pd.testing.assert_frame_equal(first.complex_roc, second.complex_roc)
        assert first.complex_results.iloc[0]["complex_id"] == second.complex_results.iloc[0]["complex_id"]

    def test_empty_matrix(self, complex_annotation):
        empty = ProfileMatrix(pd.DataFrame(columns=["T37_mean.fc"], dtype=float), [37.0], "M")

        with pytest.raises(EmptyInputError):
            run_tpca(empty, complex_annotation, verbose=False)


class TestDifferentialCoaggregation:
    """Test the differential coaggregation test between two stages"""

    @pytest.fixture
    def candidates(self, complex_annotation):
        ppis = expand_complexes_to_ppis(complex_annotation)
        return ppis[ppis["complex_id"].isin(["CPX-STABLE", "CPX-MITOTIC"])]

    def test_result_table(self, stage_matrices, candidates, small_config):
        diff = run_differential_coaggregation(stage_matrices["G1_S"], stage_matrices["M"], candidates,
                                              small_config, make_rng(2), verbose=False)

        assert diff.control_label == "G1_S"
        assert diff.contrast_label == "M"
        assert list(diff.results.columns[:8]) == [
            "pair", "x", "y", "distance_control", "distance_contrast",
            "distance_difference", "p_value", "p_adj",
        ]
        assert "complex_id" in diff.results.columns
        assert len(diff.results) == 16
        assert diff.results["p_value"].is_monotonic_increasing
        assert (diff.results["p_adj"] >= diff.results["p_value"]).all()
        np.testing.assert_allclose(
            diff.results["distance_difference"],
            diff.results["distance_contrast"] - diff.results["distance_control"],
        )

    def test_changed_complex_ranks_first(self, stage_matrices, candidates, small_config):
        diff = run_differential_coaggregation(stage_matrices["G1_S"], stage_matrices["M"], candidates,
                                              small_config, make_rng(2), verbose=False)
        results = diff.results

        top = results.head(6)
        assert set(top["x"]) | set(top["y"]) == set(MITOTIC_COMPLEX)
        assert (top["distance_difference"] < 0).all()
        stable = results[results["x"].isin(STABLE_COMPLEX)]
        assert (stable["p_value"] == 1.0).all()
        assert (top["p_value"] < stable["p_value"].min()).all()

    def test_reproducible_with_same_seed(self, stage_matrices, candidates, small_config):
        first = run_differential_coaggregation(stage_matrices["G1_S"], stage_matrices["M"], candidates,
                                               small_config, make_rng(8), verbose=False)
        second = run_differential_coaggregation(stage_matrices["G1_S"], stage_matrices["M"], candidates,
                                                small_config, make_rng(8), verbose=False)

        pd.testing.assert_frame_equal(first.results, second.results)

    def test_no_measured_candidate(self, stage_matrices, small_config):
        candidates = pd.DataFrame({"x": ["ABSENT1"], "y": ["ABSENT2"]})

        with pytest.raises(EmptyInputError):
            run_differential_coaggregation(stage_matrices["G1_S"], stage_matrices["M"], candidates,
                                           small_config, verbose=False)

    def test_no_shared_proteins(self, small_config):
        control = ProfileMatrix(pd.DataFrame([[1.0], [0.5]], index=["A", "B"]), [37.0], "G1_S")
        contrast = ProfileMatrix(pd.DataFrame([[1.0], [0.5]], index=["C", "D"]), [37.0], "M")

        with pytest.raises(EmptyInputError):
            run_differential_coaggregation(control, contrast, pd.DataFrame({"x": ["A"], "y": ["B"]}),
                                           small_config, verbose=False)

    def test_empty_result_keeps_columns_and_labels(self, stage_matrices):
        candidates = pd.DataFrame(columns=["pair", "x", "y", "complex_id"])

        diff = empty_diff_result(stage_matrices["G1_S"], stage_matrices["M"], candidates)

        assert diff.results.empty
        assert list(diff.results.columns) == DIFF_RESULT_COLUMNS + ["complex_id"]
        assert (diff.control_label, diff.contrast_label) == ("G1_S", "M")
        assert diff.control_profiles[0] is stage_matrices["G1_S"]

    def test_empty_result_custom_labels(self, stage_matrices):
        diff = empty_diff_result([stage_matrices["G1_S"]], [stage_matrices["M"]], pd.DataFrame(),
                                 control_label="interphase", contrast_label="mitosis")

        assert (diff.control_label, diff.contrast_label) == ("interphase", "mitosis")
        assert list(diff.results.columns) == DIFF_RESULT_COLUMNS


class TestDisplaySignificantResults:

    def test_threshold_is_strict(self):
        results = pd.DataFrame({
            "pair": ["A:B", "C:D", "E:F"],
            "p_value": [0.01, 0.05, 0.001],
            "p_adj": [0.05, 0.1, 0.01],
        })

        significant = display_significant_results(results, threshold=0.1, verbose=False)

        assert list(significant["pair"]) == ["E:F", "A:B"]
