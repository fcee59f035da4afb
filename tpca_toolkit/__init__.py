"""
Thermal Proximity Coaggregation (TPCA) Toolkit
==============================================

A Python library for detecting differential protein-protein coaggregation from
thermal proteome profiling (TPP) data. Proteins that interact tend to melt
together, so the similarity of their thermal profiles is evidence for an
interaction; comparing that similarity between two conditions reveals
interactions that are gained or lost.

QUICK START EXAMPLE:
-------------------
    import tpca_toolkit as tpk

    # 1. Load data and build one profile matrix per cell-cycle stage
    config = tpk.DatasetConfig(url="https://.../table_s4.xlsx")
    table = tpk.load_tpp_sheet(tpk.download_dataset(config.url, config.local_file),
                               config.sheet_name)
    matrices = tpk.build_condition_matrices(table, config)

    # 2. Score complexes per stage (seed every stochastic call)
    complexes = tpk.load_complex_annotation('complexes.csv')
    g1s = tpk.run_tpca(matrices['G1_S'], complex_annotation=complexes, rng=tpk.make_rng(42))
    m = tpk.run_tpca(matrices['M'], complex_annotation=complexes, rng=tpk.make_rng(42))

    # 3. Reduce the candidates and test for differential coaggregation
    candidates = tpk.complex_centric_candidates(g1s, m, tpk.expand_complexes_to_ppis(complexes))
    diff = tpk.run_differential_coaggregation(matrices['G1_S'], matrices['M'], candidates,
                                              rng=tpk.make_rng(42))

    # 4. Visualize
    tpk.plot_diff_volcano(diff)

MODULE OVERVIEW:
===============

data_import
    Purpose: Download the TPP spreadsheet once and load a worksheet
    Key functions: download_dataset(), load_tpp_sheet(), parse_temperature()

preprocessing
    Purpose: Quality filtering and reshaping into profile matrices
    Key functions: filter_by_quality(), build_profile_matrix(), build_condition_matrices()

annotation
    Purpose: Complex and PPI annotation tables
    Key functions: load_complex_annotation(), load_ppi_annotation(), expand_complexes_to_ppis()

statistical_analysis
    Purpose: Complex, PPI and differential coaggregation tests; ROC analysis
    Key functions: run_tpca(), run_differential_coaggregation(), TPCAConfig()

candidate_selection
    Purpose: Complex-centric and PPI-centric candidate reduction
    Key functions: complex_centric_candidates(), ppi_centric_candidates()

visualization
    Purpose: ROC curves, volcano plots, pair profiles, candidate overlap
    Key functions: plot_roc_curves(), plot_diff_volcano(), plot_pair_profiles()

export
    Purpose: Result tables, timestamped configuration, notebook report
    Key functions: export_result_tables(), export_timestamped_config(), write_analysis_report()

workflow
    Purpose: The complete cell-cycle analysis in one call
    Key functions: run_cell_cycle_coaggregation_analysis()

ERROR HANDLING:
==============
- EmptyInputError: nothing left to test (empty matrix, no measured complex or pair)
- AnnotationError: annotation table lacks required columns
- ProfileMatrixError: temperatures do not match columns, or duplicated row names
"""

# =============================================================================
# MODULE IMPORTS - Core functionality organized by analysis stage
# =============================================================================

from . import data_import          # Data loading
from . import preprocessing        # Filtering and reshaping
from . import annotation           # Complex / PPI annotations
from . import validation           # Exceptions and validators
from . import statistical_analysis  # Coaggregation testing
from . import candidate_selection  # Hypothesis reduction
from . import visualization        # Plotting
from . import export               # Results export and reporting
from . import workflow             # End-to-end analysis

__version__ = "1.0.0"

# =============================================================================
# CONVENIENCE IMPORTS - Most commonly used functions available at top level
# =============================================================================

from .data_import import (
    DatasetConfig,
    download_dataset,
    load_tpp_sheet,
    parse_temperature,
    resolve_dataset_path,
)

from .preprocessing import (
    ProfileMatrix,
    filter_by_quality,
    build_profile_matrix,
    build_condition_matrices,
)

from .annotation import (
    make_pair_key,
    load_complex_annotation,
    load_ppi_annotation,
    filter_ppis_by_score,
    expand_complexes_to_ppis,
)

from .validation import (
    EmptyInputError,
    AnnotationError,
    ProfileMatrixError,
)

from .statistical_analysis import (
    TPCAConfig,
    TPCAResult,
    DiffTPCAResult,
    make_rng,
    run_tpca,
    run_complex_coaggregation,
    run_ppi_coaggregation,
    run_differential_coaggregation,
    empty_diff_result,
    display_significant_results,
)

from .candidate_selection import (
    complex_centric_candidates,
    ppi_centric_candidates,
    union_significant,
    compare_candidate_sets,
)

from .visualization import (
    plot_roc_curves,
    plot_diff_volcano,
    plot_pair_profiles,
    plot_candidate_overlap,
)

from .export import (
    export_result_tables,
    export_timestamped_config,
    write_analysis_report,
)

from .workflow import run_cell_cycle_coaggregation_analysis

# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    # MODULES
    "data_import",
    "preprocessing",
    "annotation",
    "validation",
    "statistical_analysis",
    "candidate_selection",
    "visualization",
    "export",
    "workflow",

    # DATA LOADING
    "DatasetConfig",
    "download_dataset",
    "load_tpp_sheet",
    "parse_temperature",
    "resolve_dataset_path",

    # PREPROCESSING
    "ProfileMatrix",
    "filter_by_quality",
    "build_profile_matrix",
    "build_condition_matrices",

    # ANNOTATION
    "make_pair_key",
    "load_complex_annotation",
    "load_ppi_annotation",
    "filter_ppis_by_score",
    "expand_complexes_to_ppis",

    # ERRORS
    "EmptyInputError",
    "AnnotationError",
    "ProfileMatrixError",

    # STATISTICAL ANALYSIS
    "TPCAConfig",
    "TPCAResult",
    "DiffTPCAResult",
    "make_rng",
    "run_tpca",
    "run_complex_coaggregation",
    "run_ppi_coaggregation",
    "run_differential_coaggregation",
    "empty_diff_result",
    "display_significant_results",

    # CANDIDATE SELECTION
    "complex_centric_candidates",
    "ppi_centric_candidates",
    "union_significant",
    "compare_candidate_sets",

    # VISUALIZATION
    "plot_roc_curves",
    "plot_diff_volcano",
    "plot_pair_profiles",
    "plot_candidate_overlap",

    # EXPORT
    "export_result_tables",
    "export_timestamped_config",
    "write_analysis_report",

    # WORKFLOW
    "run_cell_cycle_coaggregation_analysis",
]
