"""
Candidate Selection Module for Differential Coaggregation

Running the differential test on every annotated interaction inflates the
multiple-testing burden, so the hypothesis space is reduced first by
screening for coaggregation within each condition. Two strategies:

complex-centric
    Complexes significant in either condition are expanded into their
    pairwise interactions.
ppi-centric
    High-confidence interactions significant in either condition are kept
    directly. A looser threshold is used here to avoid over-pruning.
"""

import pandas as pd
from typing import Dict, Iterable, Optional, Set, Tuple

from .annotation import restrict_to_complexes, standardize_ppi_annotation
from .statistical_analysis import TPCAResult

COMPLEX_CENTRIC_THRESHOLD = 0.1
PPI_CENTRIC_THRESHOLD = 0.2


def significant_ids(
    results: pd.DataFrame,
    id_column: str,
    threshold: float = 0.1,
    p_column: str = "p_adj",
) -> Set[str]:
    """Identifiers of rows with ``p_column < threshold``."""
    if results is None or results.empty:
        return set()
    return set(results.loc[results[p_column] < threshold, id_column])


def union_significant(
    tables: Iterable[pd.DataFrame],
    id_column: str,
    threshold: float = 0.1,
    p_column: str = "p_adj",
) -> Set[str]:
    """Union of the significant identifiers of several result tables."""
    union: Set[str] = set()
    for table in tables:
        union |= significant_ids(table, id_column, threshold, p_column)
    return union


def complex_centric_candidates(
    control: TPCAResult,
    contrast: TPCAResult,
    complex_ppis: pd.DataFrame,
    threshold: float = COMPLEX_CENTRIC_THRESHOLD,
    verbose: bool = True,
) -> pd.DataFrame:
    """
    PPIs of complexes that coaggregate in at least one condition.

    Parameters:
    -----------
    control, contrast : TPCAResult
        Per-condition results with complex tables
    complex_ppis : pd.DataFrame
        Complex -> PPI table ('x', 'y', 'pair', 'complex_id'),
        e.g. from annotation.expand_complexes_to_ppis()
    threshold : float
        Adjusted p-value cut-off for a complex to be retained

    Returns:
    --------
    pd.DataFrame : One row per candidate pair with its retained complex ids
    """
    for result in (control, contrast):
        if result.complex_results is None:
            raise ValueError(f"TPCA result '{result.condition}' has no complex results")

    retained = union_significant(
        [control.complex_results, contrast.complex_results], "complex_id", threshold
    )
    candidates = restrict_to_complexes(complex_ppis, retained)

    if verbose:
        n_control = len(significant_ids(control.complex_results, "complex_id", threshold))
        n_contrast = len(significant_ids(contrast.complex_results, "complex_id", threshold))
        print("=== COMPLEX-CENTRIC CANDIDATES ===\n")
        print(f"Significant complexes (p_adj < {threshold}): "
              f"{control.condition}={n_control}, {contrast.condition}={n_contrast}, union={len(retained)}")
        print(f"Candidate PPIs from retained complexes: {len(candidates)}")

    return candidates


def ppi_centric_candidates(
    control: TPCAResult,
    contrast: TPCAResult,
    ppi_annotation: pd.DataFrame,
    threshold: float = PPI_CENTRIC_THRESHOLD,
    verbose: bool = True,
) -> pd.DataFrame:
    """
    Annotated PPIs that coaggregate in at least one condition.

    Parameters:
    -----------
    control, contrast : TPCAResult
        Per-condition results with PPI tables
    ppi_annotation : pd.DataFrame
        The (high-confidence) annotation the PPI tests were run on
    threshold : float
        Adjusted p-value cut-off

    Returns:
    --------
    pd.DataFrame : Rows of the annotation whose pair is significant in either condition
    """
    for result in (control, contrast):
        if result.ppi_results is None:
            raise ValueError(f"TPCA result '{result.condition}' has no PPI results")

    retained = union_significant([control.ppi_results, contrast.ppi_results], "pair", threshold)
    annotation = standardize_ppi_annotation(ppi_annotation)
    candidates = annotation[annotation["pair"].isin(retained)].reset_index(drop=True)

    if verbose:
        print("=== PPI-CENTRIC CANDIDATES ===\n")
        print(f"Significant PPIs (p_adj < {threshold}): "
              f"{control.condition}={len(significant_ids(control.ppi_results, 'pair', threshold))}, "
              f"{contrast.condition}={len(significant_ids(contrast.ppi_results, 'pair', threshold))}, "
              f"union={len(retained)}")

    return candidates


def compare_candidate_sets(
    first: Set[str],
    second: Set[str],
    labels: Tuple[str, str] = ("complex-centric", "PPI-centric"),
    verbose: bool = True,
) -> Dict[str, object]:
    """
    Descriptive overlap of two identifier sets.

    Returns:
    --------
    Dict with 'labels', 'shared', 'only_first', 'only_second' (sorted lists)
    and their sizes under 'n_shared', 'n_only_first', 'n_only_second'
    """
    first, second = set(first), set(second)
    comparison = {
        "labels": labels,
        "shared": sorted(first & second),
        "only_first": sorted(first - second),
        "only_second": sorted(second - first),
    }
    comparison["n_shared"] = len(comparison["shared"])
    comparison["n_only_first"] = len(comparison["only_first"])
    comparison["n_only_second"] = len(comparison["only_second"])

    if verbose:
        print(f"Overlap {labels[0]} vs {labels[1]}: shared={comparison['n_shared']}, "
              f"only {labels[0]}={comparison['n_only_first']}, "
              f"only {labels[1]}={comparison['n_only_second']}")
    return comparison


def significant_pairs(
    diff_results: pd.DataFrame,
    threshold: float = 0.1,
    p_column: str = "p_adj",
) -> Set[str]:
    """Pairs with differential coaggregation below ``threshold``."""
    return significant_ids(diff_results, "pair", threshold, p_column)


def candidate_summary(candidates: pd.DataFrame, group_column: Optional[str] = "complex_id",
                      top_n: int = 10) -> pd.DataFrame:
    """Number of candidate pairs per complex (or other grouping column)."""
    if candidates.empty or group_column not in candidates.columns:
        return pd.DataFrame(columns=[group_column, "n_pairs"])
    exploded = candidates.assign(**{group_column: candidates[group_column].str.split(";")})
    exploded = exploded.explode(group_column)
    counts = (
        exploded.groupby(group_column).size().rename("n_pairs")
        .reset_index().sort_values(["n_pairs", group_column], ascending=[False, True])
    )
    return counts.head(top_n).reset_index(drop=True)
