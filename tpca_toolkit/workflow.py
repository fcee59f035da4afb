"""
Cell-cycle differential coaggregation workflow.

Runs the full analysis on the TPP-TR table of two cell-cycle stages: build
profile matrices, score complexes and high-confidence PPIs per stage, reduce
the candidate set with both strategies, test the candidates for differential
coaggregation and export tables, figures, configuration and a report.
"""

import os
import matplotlib.pyplot as plt
import pandas as pd
from typing import Any, Dict, Optional

from .annotation import expand_complexes_to_ppis, filter_ppis_by_score
from .candidate_selection import (
    COMPLEX_CENTRIC_THRESHOLD,
    PPI_CENTRIC_THRESHOLD,
    candidate_summary,
    compare_candidate_sets,
    complex_centric_candidates,
    ppi_centric_candidates,
    significant_pairs,
)
from .data_import import DatasetConfig, download_dataset, load_tpp_sheet, resolve_dataset_path
from .export import (
    create_config_dict,
    export_result_tables,
    export_timestamped_config,
    write_analysis_report,
)
from .preprocessing import ProfileMatrix, build_condition_matrices
from .statistical_analysis import (
    DiffTPCAResult,
    TPCAConfig,
    display_significant_results,
    empty_diff_result,
    make_rng,
    run_differential_coaggregation,
    run_tpca,
    summarize_tpca_result,
)
from .validation import summarize_annotation_coverage
from .visualization import (
    plot_candidate_overlap,
    plot_diff_volcano,
    plot_pair_profiles,
    plot_roc_curves,
)


def load_cell_cycle_table(dataset_config: DatasetConfig, verbose: bool = True) -> pd.DataFrame:
    """Download (once) and read the configured worksheet."""
    path = resolve_dataset_path(dataset_config)
    download_dataset(dataset_config.url, path, timeout=dataset_config.request_timeout, verbose=verbose)
    return load_tpp_sheet(path, dataset_config.sheet_name, verbose=verbose)


def diff_test_candidates(
    control: ProfileMatrix,
    contrast: ProfileMatrix,
    candidates: pd.DataFrame,
    tpca_config: TPCAConfig,
    strategy: str,
    verbose: bool = True,
) -> DiffTPCAResult:
    """
    Differential test of one strategy's candidates.

    A candidate set without any pair measured in both conditions is a valid
    screening outcome: it yields an empty differential table.
    """
    shared = set(control.proteins) & set(contrast.proteins)
    untestable = candidates.empty or not (candidates["x"].isin(shared) & candidates["y"].isin(shared)).any()
    if untestable:
        if verbose:
            print(f"No {strategy} candidate pair is measured in both conditions; "
                  "skipping the differential test")
        return empty_diff_result(control, contrast, candidates)

    return run_differential_coaggregation(
        control, contrast, candidates,
        config=tpca_config, rng=make_rng(tpca_config.random_seed), verbose=verbose,
    )


def run_cell_cycle_coaggregation_analysis(
    complex_annotation: pd.DataFrame,
    ppi_annotation: pd.DataFrame,
    dataset_config: Optional[DatasetConfig] = None,
    tpca_config: Optional[TPCAConfig] = None,
    tpp_table: Optional[pd.DataFrame] = None,
    min_ppi_score: float = 900,
    complex_centric_threshold: float = COMPLEX_CENTRIC_THRESHOLD,
    ppi_centric_threshold: float = PPI_CENTRIC_THRESHOLD,
    complex_annotation_file: Optional[str] = None,
    ppi_annotation_file: Optional[str] = None,
    output_dir: str = "tpca_results",
    output_prefix: str = "cell_cycle_tpca",
    make_plots: bool = True,
    verbose: bool = True,
) -> Dict[str, Any]:
    """
    Run the complete differential coaggregation analysis.

    Parameters:
    -----------
    complex_annotation : pd.DataFrame
        Complex memberships ('protein', 'complex_id')
    ppi_annotation : pd.DataFrame
        Pairwise interactions ('x', 'y', 'combined_score')
    dataset_config : DatasetConfig, optional
        Where the TPP table lives and how it is laid out
    tpca_config : TPCAConfig, optional
        Testing parameters; its random_seed seeds every stochastic step
    tpp_table : pd.DataFrame, optional
        Already loaded TPP table; skips download and worksheet loading
    min_ppi_score : float
        Confidence cut-off for the PPI-centric annotation
    complex_centric_threshold, ppi_centric_threshold : float
        Adjusted p-value cut-offs of the two candidate strategies
    complex_annotation_file, ppi_annotation_file : str, optional
        Source files of the annotations, recorded in the exported configuration
    output_dir, output_prefix : str
        Where tables, figures, configuration and report are written
    make_plots : bool
        Whether to render and save figures

    Returns:
    --------
    dict with the profile matrices, per-stage TPCA results, candidate tables,
    differential results, overlap summary and exported file paths
    """
    dataset_config = dataset_config or DatasetConfig()
    tpca_config = tpca_config or TPCAConfig()
    tpca_config.validate()
    os.makedirs(output_dir, exist_ok=True)
    seed = tpca_config.random_seed
    control, contrast = dataset_config.control_stage, dataset_config.contrast_stage

    if tpp_table is None:
        tpp_table = load_cell_cycle_table(dataset_config, verbose=verbose)

    matrices = build_condition_matrices(tpp_table, dataset_config, verbose=verbose)
    summarize_annotation_coverage(complex_annotation["protein"], matrices[control].proteins, verbose=verbose)

    # Complex-centric strategy
    complex_tpca = {
        stage: run_tpca(matrices[stage], complex_annotation=complex_annotation,
                        config=tpca_config, rng=make_rng(seed), verbose=verbose)
        for stage in (control, contrast)
    }
    for stage, result in complex_tpca.items():
        display_significant_results(result.complex_results, complex_centric_threshold,
                                    title=f"Coaggregating complexes in {stage}", verbose=verbose)

    complex_ppis = expand_complexes_to_ppis(complex_annotation)
    complex_candidates = complex_centric_candidates(
        complex_tpca[control], complex_tpca[contrast], complex_ppis,
        threshold=complex_centric_threshold, verbose=verbose,
    )
    complex_diff = diff_test_candidates(matrices[control], matrices[contrast], complex_candidates,
                                        tpca_config, "complex-centric", verbose=verbose)

    # PPI-centric strategy
    high_confidence_ppis = filter_ppis_by_score(ppi_annotation, min_ppi_score, verbose=verbose)
    ppi_tpca = {
        stage: run_tpca(matrices[stage], ppi_annotation=high_confidence_ppis,
                        config=tpca_config, rng=make_rng(seed), verbose=verbose)
        for stage in (control, contrast)
    }
    ppi_candidates = ppi_centric_candidates(
        ppi_tpca[control], ppi_tpca[contrast], high_confidence_ppis,
        threshold=ppi_centric_threshold, verbose=verbose,
    )
    ppi_diff = diff_test_candidates(matrices[control], matrices[contrast], ppi_candidates,
                                    tpca_config, "PPI-centric", verbose=verbose)

    threshold = tpca_config.p_adj_threshold
    complex_hits = significant_pairs(complex_diff.results, threshold)
    ppi_hits = significant_pairs(ppi_diff.results, threshold)
    overlap = compare_candidate_sets(complex_hits, ppi_hits, verbose=verbose)

    figures: Dict[str, str] = {}
    if make_plots:
        def figure_path(name):
            return os.path.join(output_dir, f"{output_prefix}_{name}.png")

        plots = {
            "complex_roc": lambda path: plot_roc_curves(
                list(complex_tpca.values()), kind="complex", save_path=path, show=False),
            "ppi_roc": lambda path: plot_roc_curves(
                list(ppi_tpca.values()), kind="ppi", save_path=path, show=False),
            "complex_centric_volcano": lambda path: plot_diff_volcano(
                complex_diff, p_threshold=threshold, save_path=path, show=False),
            "ppi_centric_volcano": lambda path: plot_diff_volcano(
                ppi_diff, p_threshold=threshold, save_path=path, show=False),
            "overlap": lambda path: plot_candidate_overlap(
                complex_hits, ppi_hits, save_path=path, show=False),
        }
        top_diff = complex_diff if not complex_diff.results.empty else ppi_diff
        if not top_diff.results.empty:
            plots["top_pair_profiles"] = lambda path: plot_pair_profiles(
                top_diff, top_diff.results.iloc[0]["pair"], save_path=path, show=False)

        for name, render in plots.items():
            fig = render(figure_path(name))
            if fig is not None:
                figures[name] = figure_path(name)
                plt.close(fig)

    tables = {
        f"complex_tpca_{control}": complex_tpca[control].complex_results,
        f"complex_tpca_{contrast}": complex_tpca[contrast].complex_results,
        f"ppi_tpca_{control}": ppi_tpca[control].ppi_results,
        f"ppi_tpca_{contrast}": ppi_tpca[contrast].ppi_results,
        "complex_centric_candidates": complex_candidates,
        "complex_centric_diff": complex_diff.results,
        "ppi_centric_candidates": ppi_candidates,
        "ppi_centric_diff": ppi_diff.results,
    }
    exported_files = export_result_tables(tables, output_dir, output_prefix, verbose=verbose)

    config_file = export_timestamped_config(
        create_config_dict(
            dataset_config, tpca_config,
            min_ppi_score=min_ppi_score,
            complex_centric_threshold=complex_centric_threshold,
            ppi_centric_threshold=ppi_centric_threshold,
            output_dir=output_dir,
            output_prefix=output_prefix,
            complex_annotation_file=complex_annotation_file,
            ppi_annotation_file=ppi_annotation_file,
        ),
        output_dir=output_dir,
        output_prefix=output_prefix,
        computed_values={
            f"Proteins in {stage}": len(matrix.values) for stage, matrix in matrices.items()
        },
    )

    report_sections = [
        {
            "heading": "Data",
            "text": (
                f"Profile matrices were built for {control} ({len(matrices[control].values)} proteins) "
                f"and {contrast} ({len(matrices[contrast].values)} proteins) after requiring "
                f"{dataset_config.required_replicates} replicates and more than "
                f"{dataset_config.min_qupm} quantified unique peptide matches."
            ),
        },
        {
            "heading": "Coaggregation overview",
            "table": pd.DataFrame([
                summarize_tpca_result(result)
                for result in (*complex_tpca.values(), *ppi_tpca.values())
            ]),
        },
        {
            "heading": "Complex coaggregation",
            "text": (
                f"Complexes with p_adj < {complex_centric_threshold} in either stage were expanded "
                f"into {len(complex_candidates)} candidate pairs."
            ),
            "table": candidate_summary(complex_candidates),
            "figure": figures.get("complex_roc"),
        },
        {
            "heading": "Complex-centric differential coaggregation",
            "code": "results['complex_diff'].results",
            "table": complex_diff.results,
            "figure": figures.get("complex_centric_volcano"),
        },
        {
            "heading": "Top pair profiles",
            "figure": figures.get("top_pair_profiles"),
        },
        {
            "heading": "PPI coaggregation",
            "text": (
                f"{len(high_confidence_ppis)} PPIs with combined score >= {min_ppi_score} were tested; "
                f"pairs with p_adj < {ppi_centric_threshold} in either stage gave "
                f"{len(ppi_candidates)} candidates."
            ),
            "figure": figures.get("ppi_roc"),
        },
        {
            "heading": "PPI-centric differential coaggregation",
            "code": "results['ppi_diff'].results",
            "table": ppi_diff.results,
            "figure": figures.get("ppi_centric_volcano"),
        },
        {
            "heading": "Overlap of both strategies",
            "text": (
                f"Pairs with p_adj < {threshold}: {overlap['n_shared']} found by both strategies, "
                f"{overlap['n_only_first']} only complex-centric, "
                f"{overlap['n_only_second']} only PPI-centric."
            ),
            "figure": figures.get("overlap"),
        },
    ]
    report_file = write_analysis_report(
        report_sections, os.path.join(output_dir, f"{output_prefix}_report.ipynb"),
    )

    return {
        "matrices": matrices,
        "complex_tpca": complex_tpca,
        "complex_candidates": complex_candidates,
        "complex_diff": complex_diff,
        "ppi_tpca": ppi_tpca,
        "ppi_candidates": ppi_candidates,
        "ppi_diff": ppi_diff,
        "overlap": overlap,
        "figures": figures,
        "exported_files": exported_files,
        "config_file": config_file,
        "report_file": report_file,
    }
