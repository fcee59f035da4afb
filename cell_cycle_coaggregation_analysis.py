#!/usr/bin/env python3
"""
Differential protein-protein coaggregation across the cell cycle.

Compares thermal proteome profiles of cells arrested in G1/S and in mitosis.
Complex and PPI coaggregation is first scored within each stage, the
candidate interactions are reduced with a complex-centric and a PPI-centric
strategy, and the candidates are tested for differential coaggregation.

Edit the configuration block below, then run:

    python cell_cycle_coaggregation_analysis.py
"""

import sys

import tpca_toolkit as tpk

# =============================================================================
# 1. INPUT FILES AND PATHS
# =============================================================================
dataset_url = ''  # HTTPS link to the supplementary TPP-TR spreadsheet
local_file = 'becher_et_al_2018_table_s4.xlsx'  # relative paths resolve against data_dir
data_dir = '.'
sheet_name = 'TableS4_TPP-TR'
complex_annotation_file = 'annotations/complexes.csv'
ppi_annotation_file = 'annotations/string_ppis.csv'

# =============================================================================
# 2. DATA LAYOUT AND QUALITY FILTER
# =============================================================================
control_stage = 'G1_S'
contrast_stage = 'M'
required_replicates = 3
min_qupm = 3

# =============================================================================
# 3. COAGGREGATION TESTING
# =============================================================================
n_samples = 10000
min_complex_size = 3
random_seed = 123

# =============================================================================
# 4. CANDIDATE SELECTION AND SIGNIFICANCE
# =============================================================================
min_ppi_score = 900
complex_centric_threshold = 0.1
ppi_centric_threshold = 0.2
p_adj_threshold = 0.1

# =============================================================================
# 5. OUTPUT
# =============================================================================
output_dir = 'tpca_results'
output_prefix = 'cell_cycle_tpca'


def main():
    dataset_config = tpk.DatasetConfig(
        url=dataset_url or None,
        local_file=local_file,
        data_dir=data_dir,
        sheet_name=sheet_name,
        control_stage=control_stage,
        contrast_stage=contrast_stage,
        required_replicates=required_replicates,
        min_qupm=min_qupm,
    )

    tpca_config = tpk.TPCAConfig()
    tpca_config.n_samples = n_samples
    tpca_config.min_complex_size = min_complex_size
    tpca_config.random_seed = random_seed
    tpca_config.p_adj_threshold = p_adj_threshold

    complexes = tpk.load_complex_annotation(complex_annotation_file)
    ppis = tpk.load_ppi_annotation(ppi_annotation_file)

    results = tpk.run_cell_cycle_coaggregation_analysis(
        complexes,
        ppis,
        dataset_config=dataset_config,
        tpca_config=tpca_config,
        min_ppi_score=min_ppi_score,
        complex_centric_threshold=complex_centric_threshold,
        ppi_centric_threshold=ppi_centric_threshold,
        complex_annotation_file=complex_annotation_file,
        ppi_annotation_file=ppi_annotation_file,
        output_dir=output_dir,
        output_prefix=output_prefix,
    )

    print(f"\nAnalysis complete. Report: {results['report_file']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
