"""
Statistical Analysis Module for Thermal Proximity Coaggregation

This module scores coaggregation of protein complexes and protein-protein
interactions (PPIs) from thermal profiles, and tests for differential
coaggregation between two conditions.

Coaggregation is measured as the distance between relative-abundance
profiles: interacting proteins tend to melt together, so their profiles are
closer than those of random protein pairs. All significance values are
empirical, estimated against null distributions built from randomly drawn
proteins, and corrected for multiple testing with statsmodels.

Every stochastic function takes a ``numpy.random.Generator``; pass a freshly
seeded one (see make_rng) to make a run reproducible.
"""

import pandas as pd
import numpy as np
from dataclasses import dataclass, field
from scipy.spatial.distance import pdist
from sklearn.metrics import roc_curve, auc
from statsmodels.stats.multitest import multipletests
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .annotation import expand_complexes_to_ppis, make_pair_key, standardize_ppi_annotation
from .preprocessing import ProfileMatrix
from .validation import EmptyInputError, validate_annotation_columns, validate_profile_matrices

MatrixInput = Union[ProfileMatrix, Sequence[ProfileMatrix]]

# scipy names of the supported distance metrics
DISTANCE_METRICS = {
    "euclidean": "euclidean",
    "manhattan": "cityblock",
}

DIFF_RESULT_COLUMNS = [
    "pair", "x", "y", "distance_control", "distance_contrast",
    "distance_difference", "p_value", "p_adj",
]


class TPCAConfig:
    """Configuration class for coaggregation testing parameters

    - n_samples: size of every permutation null distribution
    - min_complex_size: complexes with fewer measured members are skipped
    - distance_metric: 'euclidean' or 'manhattan'
    - correction_method: statsmodels multipletests method, or 'none'
    - compute_roc / n_roc_background: ROC of annotated vs. random pairs
    - random_seed: seed used by make_rng() when no generator is passed
    - p_adj_threshold: default significance cut-off for reporting
    """

    def __init__(self):
        # Permutation nulls
        self.n_samples = 10000
        self.random_seed = 42

        # Complex test
        self.min_complex_size = 3

        # Distances
        self.distance_metric = "euclidean"

        # Multiple testing correction
        self.correction_method = "fdr_bh"
        self.p_adj_threshold = 0.1

        # ROC analysis
        self.compute_roc = True
        self.n_roc_background = 10000

    def validate(self):
        """Validate parameter values"""
        if int(self.n_samples) < 1:
            raise ValueError("n_samples must be a positive integer")
        if int(self.min_complex_size) < 2:
            raise ValueError("min_complex_size must be at least 2")
        if self.distance_metric not in DISTANCE_METRICS:
            raise ValueError(
                f"distance_metric must be one of {sorted(DISTANCE_METRICS)}, got '{self.distance_metric}'"
            )
        if not 0 < self.p_adj_threshold <= 1:
            raise ValueError("p_adj_threshold must be in (0, 1]")
        if self.compute_roc and int(self.n_roc_background) < 1:
            raise ValueError("n_roc_background must be a positive integer")
        return True


@dataclass
class TPCAResult:
    """Coaggregation results of one condition."""

    condition: str
    complex_results: Optional[pd.DataFrame] = None
    ppi_results: Optional[pd.DataFrame] = None
    complex_roc: Optional[pd.DataFrame] = None
    complex_auc: Optional[float] = None
    ppi_roc: Optional[pd.DataFrame] = None
    ppi_auc: Optional[float] = None


@dataclass
class DiffTPCAResult:
    """Differential coaggregation results between a control and a contrast condition."""

    control_label: str
    contrast_label: str
    results: pd.DataFrame
    control_profiles: List[ProfileMatrix] = field(default_factory=list)
    contrast_profiles: List[ProfileMatrix] = field(default_factory=list)


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Create the random generator for one stochastic call (None -> fresh entropy)."""
    return np.random.default_rng(seed)


def _as_matrix_list(matrices: MatrixInput) -> List[ProfileMatrix]:
    if isinstance(matrices, ProfileMatrix):
        return [matrices]
    return list(matrices)


def _resolve(config: Optional[TPCAConfig], rng: Optional[np.random.Generator]):
    if config is None:
        config = TPCAConfig()
    config.validate()
    if rng is None:
        rng = make_rng(config.random_seed)
    return config, rng


def combine_replicates(matrices: MatrixInput) -> pd.DataFrame:
    """
    Concatenate the profiles of all replicate matrices of one condition.

    Only proteins present in every matrix are kept, in the order of the first
    matrix. Columns are keyed by (replicate number, original column).

    Returns:
    --------
    pd.DataFrame : proteins x (replicates * temperatures)
    """
    matrices = _as_matrix_list(matrices)
    validate_profile_matrices(matrices, min_proteins=1)

    shared = set(matrices[0].values.index)
    for matrix in matrices[1:]:
        shared &= set(matrix.values.index)
    proteins = [p for p in matrices[0].values.index if p in shared]
    if not proteins:
        raise EmptyInputError("No protein is measured in all replicate matrices")

    return pd.concat(
        [matrix.values.loc[proteins] for matrix in matrices],
        axis=1,
        keys=list(range(len(matrices))),
    )


def _paired_distances(a: np.ndarray, b: np.ndarray, metric: str) -> np.ndarray:
    diff = a - b
    if metric == "manhattan":
        return np.abs(diff).sum(axis=1)
    return np.sqrt((diff ** 2).sum(axis=1))


def _random_pairs(n: int, size: int, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    """Indices of ``size`` random pairs of distinct proteins out of ``n``."""
    first = rng.integers(0, n, size=size)
    second = rng.integers(0, n - 1, size=size)
    second = second + (second >= first)
    return first, second


def _random_sets(n: int, size: int, count: int, rng: np.random.Generator) -> np.ndarray:
    """``count`` rows of ``size`` distinct protein indices out of ``n``."""
    if size * size > n:
        # Collisions are likely; take the first columns of random permutations
        return rng.random((count, n)).argsort(axis=1)[:, :size]

    sets = rng.integers(0, n, size=(count, size))
    clash = _has_repeats(sets)
    while clash.any():
        sets[clash] = rng.integers(0, n, size=(int(clash.sum()), size))
        clash = _has_repeats(sets)
    return sets


def _has_repeats(sets: np.ndarray) -> np.ndarray:
    ordered = np.sort(sets, axis=1)
    return (ordered[:, 1:] == ordered[:, :-1]).any(axis=1)


def _mean_pairwise_distances(set_values: np.ndarray, metric: str) -> np.ndarray:
    """Mean pairwise distance within every set of a (sets, members, temperatures) block."""
    diff = set_values[:, :, None, :] - set_values[:, None, :, :]
    if metric == "manhattan":
        dist = np.abs(diff).sum(axis=-1)
    else:
        dist = np.sqrt((diff ** 2).sum(axis=-1))
    size = set_values.shape[1]
    return dist.sum(axis=(1, 2)) / (size * (size - 1))


def _random_set_null(values: np.ndarray, size: int, n_samples: int, metric: str,
                     rng: np.random.Generator, max_elements: int = 4_000_000) -> np.ndarray:
    """Mean pairwise distances of ``n_samples`` random protein sets, drawn in memory-bounded blocks."""
    n_proteins, n_columns = values.shape
    block = max(1, max_elements // (size * size * n_columns))
    null = np.empty(n_samples)
    for start in range(0, n_samples, block):
        stop = min(start + block, n_samples)
        sets = _random_sets(n_proteins, size, stop - start, rng)
        null[start:stop] = _mean_pairwise_distances(values[sets], metric)
    return null


def _empirical_p_values(observed: np.ndarray, null: np.ndarray) -> np.ndarray:
    """One-sided p-values for small observed distances: (1 + #{null <= obs}) / (1 + n)."""
    sorted_null = np.sort(null)
    counts = np.searchsorted(sorted_null, observed, side="right")
    return (counts + 1) / (len(null) + 1)


def apply_multiple_testing_correction(results_df: pd.DataFrame, method: str = "fdr_bh",
                                      p_column: str = "p_value") -> pd.DataFrame:
    """Add a 'p_adj' column; adjusted values are never below the raw p-values."""
    if results_df.empty:
        results_df["p_adj"] = pd.Series(dtype=float)
        return results_df

    raw = results_df[p_column].fillna(1.0).to_numpy(dtype=float)
    if method == "none":
        adjusted = raw.copy()
    else:
        _, adjusted, _, _ = multipletests(raw, method=method)
    results_df["p_adj"] = np.maximum(adjusted, raw)
    return results_df


def _sort_by_p_value(results_df: pd.DataFrame, key_column: str) -> pd.DataFrame:
    return results_df.sort_values(["p_value", key_column], kind="mergesort").reset_index(drop=True)


def run_complex_coaggregation(
    matrices: MatrixInput,
    complex_annotation: pd.DataFrame,
    config: Optional[TPCAConfig] = None,
    rng: Optional[np.random.Generator] = None,
    verbose: bool = True,
) -> pd.DataFrame:
    """
    Test every annotated complex for coaggregation of its members.

    The statistic is the mean pairwise profile distance among the measured
    members. Its null distribution is built from ``config.n_samples`` random
    protein sets of the same size, drawn from all measured proteins.

    Parameters:
    -----------
    matrices : ProfileMatrix or list of ProfileMatrix
        Profiles of one condition (replicates are concatenated)
    complex_annotation : pd.DataFrame
        Columns 'protein' and 'complex_id'
    config : TPCAConfig, optional
    rng : np.random.Generator, optional
        Defaults to make_rng(config.random_seed)

    Returns:
    --------
    pd.DataFrame with columns complex_id, count, mean_distance, p_value, p_adj,
    sorted by p_value
    """
    config, rng = _resolve(config, rng)
    validate_annotation_columns(complex_annotation, ["protein", "complex_id"], "Complex annotation")

    profiles = combine_replicates(matrices)
    if len(profiles) < 2:
        raise EmptyInputError("Need at least two measured proteins to test complexes")
    position = {protein: i for i, protein in enumerate(profiles.index)}
    values = profiles.to_numpy(dtype=float)
    metric = DISTANCE_METRICS[config.distance_metric]

    measured = complex_annotation[complex_annotation["protein"].isin(list(position))]
    members = {
        complex_id: sorted(set(proteins))
        for complex_id, proteins in measured.groupby("complex_id", sort=True)["protein"]
    }
    members = {cid: prots for cid, prots in members.items() if len(prots) >= config.min_complex_size}
    if not members:
        raise EmptyInputError(
            f"No complex has at least {config.min_complex_size} measured members"
        )

    if verbose:
        print(f"Testing {len(members)} complexes against {config.n_samples} random sets "
              f"({len(profiles)} proteins measured)")

    null_by_size = {}
    for size in sorted({len(prots) for prots in members.values()}):
        null_by_size[size] = _random_set_null(
            values, size, int(config.n_samples), config.distance_metric, rng
        )

    rows = []
    for complex_id, proteins in members.items():
        observed = pdist(values[[position[p] for p in proteins]], metric=metric).mean()
        p_value = _empirical_p_values(np.array([observed]), null_by_size[len(proteins)])[0]
        rows.append({
            "complex_id": complex_id,
            "count": len(proteins),
            "mean_distance": observed,
            "p_value": p_value,
        })

    results = apply_multiple_testing_correction(pd.DataFrame(rows), config.correction_method)
    return _sort_by_p_value(results, "complex_id")


def run_ppi_coaggregation(
    matrices: MatrixInput,
    ppi_annotation: pd.DataFrame,
    config: Optional[TPCAConfig] = None,
    rng: Optional[np.random.Generator] = None,
    verbose: bool = True,
) -> pd.DataFrame:
    """
    Test every annotated protein pair for coaggregation.

    Each pair distance is compared to the distances of ``config.n_samples``
    random pairs of measured proteins. Extra annotation columns (e.g.
    'combined_score') are carried into the result.

    Returns:
    --------
    pd.DataFrame with columns pair, x, y, distance, p_value, p_adj (+ annotation
    columns), sorted by p_value
    """
    config, rng = _resolve(config, rng)
    ppis = standardize_ppi_annotation(ppi_annotation)

    profiles = combine_replicates(matrices)
    if len(profiles) < 2:
        raise EmptyInputError("Need at least two measured proteins to test PPIs")
    position = {protein: i for i, protein in enumerate(profiles.index)}
    values = profiles.to_numpy(dtype=float)

    measured = ppis[ppis["x"].isin(list(position)) & ppis["y"].isin(list(position))].reset_index(drop=True)
    if measured.empty:
        raise EmptyInputError("None of the annotated PPIs has both proteins measured")

    if verbose:
        print(f"Testing {len(measured)} PPIs against {config.n_samples} random pairs")

    idx_x = measured["x"].map(position).to_numpy()
    idx_y = measured["y"].map(position).to_numpy()
    distances = _paired_distances(values[idx_x], values[idx_y], config.distance_metric)

    null_x, null_y = _random_pairs(len(values), int(config.n_samples), rng)
    null = _paired_distances(values[null_x], values[null_y], config.distance_metric)

    results = measured[["pair", "x", "y"]].copy()
    results["distance"] = distances
    results["p_value"] = _empirical_p_values(distances, null)
    results = apply_multiple_testing_correction(results, config.correction_method)

    extra = [col for col in measured.columns if col not in ("pair", "x", "y")]
    for col in extra:
        results[col] = measured[col].to_numpy()

    return _sort_by_p_value(results, "pair")


def compute_roc(
    matrices: MatrixInput,
    positive_pairs: pd.DataFrame,
    config: Optional[TPCAConfig] = None,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[pd.DataFrame, float]:
    """
    ROC curve of annotated pairs against random non-annotated pairs.

    Pairs are ranked by closeness of their profiles (score = -distance). The
    background consists of ``config.n_roc_background`` random pairs that are
    not in ``positive_pairs``.

    Returns:
    --------
    (roc_df, auc) where roc_df has columns fpr, tpr, threshold
    """
    config, rng = _resolve(config, rng)
    positives = standardize_ppi_annotation(positive_pairs)

    profiles = combine_replicates(matrices)
    if len(profiles) < 2:
        raise EmptyInputError("Need at least two measured proteins for a ROC curve")
    proteins = list(profiles.index)
    position = {protein: i for i, protein in enumerate(proteins)}
    values = profiles.to_numpy(dtype=float)

    measured = positives[positives["x"].isin(list(position)) & positives["y"].isin(list(position))]
    if measured.empty:
        raise EmptyInputError("None of the annotated pairs has both proteins measured")

    positive_distances = _paired_distances(
        values[measured["x"].map(position).to_numpy()],
        values[measured["y"].map(position).to_numpy()],
        config.distance_metric,
    )

    bg_x, bg_y = _random_pairs(len(values), int(config.n_roc_background), rng)
    annotated = set(positives["pair"])
    is_background = np.array([
        make_pair_key(proteins[i], proteins[j]) not in annotated for i, j in zip(bg_x, bg_y)
    ], dtype=bool)
    background_distances = _paired_distances(
        values[bg_x[is_background]], values[bg_y[is_background]], config.distance_metric
    )
    if len(background_distances) == 0:
        raise EmptyInputError("Every random background pair is annotated; cannot build a ROC curve")

    y_true = np.concatenate([np.ones(len(positive_distances)), np.zeros(len(background_distances))])
    scores = -np.concatenate([positive_distances, background_distances])
    fpr, tpr, thresholds = roc_curve(y_true, scores)

    roc_df = pd.DataFrame({"fpr": fpr, "tpr": tpr, "threshold": thresholds})
    return roc_df, float(auc(fpr, tpr))


def run_tpca(
    matrices: MatrixInput,
    complex_annotation: Optional[pd.DataFrame] = None,
    ppi_annotation: Optional[pd.DataFrame] = None,
    config: Optional[TPCAConfig] = None,
    rng: Optional[np.random.Generator] = None,
    condition: Optional[str] = None,
    verbose: bool = True,
) -> TPCAResult:
    """
    Run the complex and/or PPI coaggregation tests for one condition.

    Parameters:
    -----------
    matrices : ProfileMatrix or list of ProfileMatrix
        Profiles of one condition
    complex_annotation : pd.DataFrame, optional
        Complex memberships ('protein', 'complex_id')
    ppi_annotation : pd.DataFrame, optional
        Pairwise interactions ('x', 'y', ...)
    config : TPCAConfig, optional
    rng : np.random.Generator, optional
    condition : str, optional
        Label of the result. Defaults to the condition of the first matrix.

    Returns:
    --------
    TPCAResult
    """
    if complex_annotation is None and ppi_annotation is None:
        raise ValueError("Provide a complex annotation, a PPI annotation, or both")

    config, rng = _resolve(config, rng)
    matrix_list = _as_matrix_list(matrices)
    validate_profile_matrices(matrix_list)
    if condition is None:
        condition = matrix_list[0].condition

    if verbose:
        print(f"=== TPCA: {condition or 'condition'} ===\n")

    result = TPCAResult(condition=condition)

    if complex_annotation is not None:
        result.complex_results = run_complex_coaggregation(
            matrix_list, complex_annotation, config, rng, verbose=verbose
        )
        if config.compute_roc:
            result.complex_roc, result.complex_auc = compute_roc(
                matrix_list, expand_complexes_to_ppis(complex_annotation), config, rng
            )
            if verbose:
                print(f"  Complex ROC AUC: {result.complex_auc:.3f}")

    if ppi_annotation is not None:
        result.ppi_results = run_ppi_coaggregation(
            matrix_list, ppi_annotation, config, rng, verbose=verbose
        )
        if config.compute_roc:
            result.ppi_roc, result.ppi_auc = compute_roc(matrix_list, ppi_annotation, config, rng)
            if verbose:
                print(f"  PPI ROC AUC: {result.ppi_auc:.3f}")

    return result


def run_differential_coaggregation(
    control: MatrixInput,
    contrast: MatrixInput,
    candidate_ppis: pd.DataFrame,
    config: Optional[TPCAConfig] = None,
    rng: Optional[np.random.Generator] = None,
    control_label: Optional[str] = None,
    contrast_label: Optional[str] = None,
    verbose: bool = True,
) -> DiffTPCAResult:
    """
    Test candidate PPIs for a change in coaggregation between two conditions.

    For every pair measured in both conditions the statistic is
    distance(contrast) - distance(control). The null distribution is built
    from the same difference for ``config.n_samples`` random pairs of proteins
    measured in both conditions; p-values are two-sided around the null median.

    Parameters:
    -----------
    control, contrast : ProfileMatrix or list of ProfileMatrix
        Profiles of the two conditions
    candidate_ppis : pd.DataFrame
        Pairs to test ('x', 'y', optional annotation columns)
    config : TPCAConfig, optional
    rng : np.random.Generator, optional
    control_label, contrast_label : str, optional
        Condition names; default to the matrices' condition labels

    Returns:
    --------
    DiffTPCAResult whose table is sorted ascending by raw p_value
    """
    config, rng = _resolve(config, rng)
    control_list = _as_matrix_list(control)
    contrast_list = _as_matrix_list(contrast)
    validate_profile_matrices(control_list)
    validate_profile_matrices(contrast_list)
    control_label = control_label or control_list[0].condition or "control"
    contrast_label = contrast_label or contrast_list[0].condition or "contrast"

    if verbose:
        print(f"=== DIFFERENTIAL TPCA: {contrast_label} vs {control_label} ===\n")

    ppis = standardize_ppi_annotation(candidate_ppis)

    control_profiles = combine_replicates(control_list)
    contrast_profiles = combine_replicates(contrast_list)
    contrast_index = set(contrast_profiles.index)
    shared = [p for p in control_profiles.index if p in contrast_index]
    if len(shared) < 2:
        raise EmptyInputError("Fewer than two proteins are measured in both conditions")

    position = {protein: i for i, protein in enumerate(shared)}
    control_values = control_profiles.loc[shared].to_numpy(dtype=float)
    contrast_values = contrast_profiles.loc[shared].to_numpy(dtype=float)

    measured = ppis[ppis["x"].isin(list(position)) & ppis["y"].isin(list(position))].reset_index(drop=True)
    if measured.empty:
        raise EmptyInputError("No candidate PPI has both proteins measured in both conditions")

    if verbose:
        print(f"Testing {len(measured)} of {len(ppis)} candidate PPIs "
              f"({len(shared)} proteins measured in both conditions)")

    idx_x = measured["x"].map(position).to_numpy()
    idx_y = measured["y"].map(position).to_numpy()
    metric = config.distance_metric
    distance_control = _paired_distances(control_values[idx_x], control_values[idx_y], metric)
    distance_contrast = _paired_distances(contrast_values[idx_x], contrast_values[idx_y], metric)
    difference = distance_contrast - distance_control

    null_x, null_y = _random_pairs(len(shared), int(config.n_samples), rng)
    null = (_paired_distances(contrast_values[null_x], contrast_values[null_y], metric)
            - _paired_distances(control_values[null_x], control_values[null_y], metric))
    center = np.median(null)
    sorted_null = np.sort(np.abs(null - center))
    extreme = len(sorted_null) - np.searchsorted(sorted_null, np.abs(difference - center), side="left")

    results = measured[["pair", "x", "y"]].copy()
    results["distance_control"] = distance_control
    results["distance_contrast"] = distance_contrast
    results["distance_difference"] = difference
    results["p_value"] = (extreme + 1) / (len(null) + 1)
    results = apply_multiple_testing_correction(results, config.correction_method)

    for col in [c for c in measured.columns if c not in ("pair", "x", "y")]:
        results[col] = measured[col].to_numpy()

    results = _sort_by_p_value(results, "pair")

    if verbose:
        n_sig = (results["p_adj"] < config.p_adj_threshold).sum()
        print(f"  Significant pairs (p_adj < {config.p_adj_threshold}): {n_sig}")

    return DiffTPCAResult(
        control_label=control_label,
        contrast_label=contrast_label,
        results=results,
        control_profiles=control_list,
        contrast_profiles=contrast_list,
    )


def empty_diff_result(
    control: MatrixInput,
    contrast: MatrixInput,
    candidate_ppis: pd.DataFrame,
    control_label: Optional[str] = None,
    contrast_label: Optional[str] = None,
) -> DiffTPCAResult:
    """
    Differential result for a candidate set with nothing to test.

    The table has the differential columns (plus the candidates' annotation
    columns) and no rows, so downstream overlap and export steps still run.
    """
    control_list = _as_matrix_list(control)
    contrast_list = _as_matrix_list(contrast)
    extra = [col for col in candidate_ppis.columns if col not in DIFF_RESULT_COLUMNS]
    return DiffTPCAResult(
        control_label=control_label or control_list[0].condition or "control",
        contrast_label=contrast_label or contrast_list[0].condition or "contrast",
        results=pd.DataFrame(columns=DIFF_RESULT_COLUMNS + extra),
        control_profiles=control_list,
        contrast_profiles=contrast_list,
    )


def display_significant_results(
    results: pd.DataFrame,
    threshold: float = 0.1,
    p_column: str = "p_adj",
    title: Optional[str] = None,
    top_n: int = 10,
    verbose: bool = True,
) -> pd.DataFrame:
    """
    Filter a result table to rows below a significance threshold.

    Returns:
    --------
    pd.DataFrame : Significant rows sorted ascending by raw p-value
    """
    significant = results[results[p_column] < threshold]
    if "p_value" in significant.columns:
        significant = significant.sort_values("p_value", kind="mergesort")
    significant = significant.reset_index(drop=True)

    if verbose:
        header = title or "Significant results"
        print(f"\n{header} ({p_column} < {threshold}): {len(significant)} of {len(results)}")
        if not significant.empty:
            print(significant.head(top_n).to_string(index=False))

    return significant


def summarize_tpca_result(result: TPCAResult) -> Dict[str, object]:
    """Counts and AUCs of a TPCAResult, for reports."""
    summary = {"condition": result.condition}
    if result.complex_results is not None:
        summary["complexes_tested"] = len(result.complex_results)
        summary["complex_auc"] = result.complex_auc
    if result.ppi_results is not None:
        summary["ppis_tested"] = len(result.ppi_results)
        summary["ppi_auc"] = result.ppi_auc
    return summary
