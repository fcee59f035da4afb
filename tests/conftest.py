"""
Pytest configuration and fixtures for tpca_toolkit tests
"""

import matplotlib

matplotlib.use("Agg")

import pytest
import pandas as pd
import numpy as np
from tpca_toolkit.statistical_analysis import TPCAConfig

TEMPERATURES = [37.0, 40.4, 44.0, 46.9, 49.8, 52.9, 55.5, 58.6, 62.0, 66.3]

# Members coaggregate tightly in both stages
STABLE_COMPLEX = ["ASM1", "ASM2", "ASM3", "ASM4", "ASM5"]
# Members melt apart in G1_S and together in M
MITOTIC_COMPLEX = ["MIT1", "MIT2", "MIT3", "MIT4"]


def melting_curve(tm, slope=2.0):
    temps = np.array(TEMPERATURES)
    return 1.0 / (1.0 + np.exp((temps - tm) / slope))


def fc_column(temperature):
    return f"T{temperature:g}_mean.fc"


@pytest.fixture
def background_proteins():
    return [f"GENE{i:03d}" for i in range(80)]


@pytest.fixture
def tpp_table(background_proteins):
    """TPP-TR table with two cell-cycle stages, in the published sheet layout

    Background proteins and the stable complex have identical profiles in
    both stages; only the mitotic complex changes.
    """
    np.random.seed(42)

    profiles = {}
    for protein in background_proteins:
        tm = np.random.uniform(40, 64)
        slope = np.random.uniform(1.5, 3.0)
        profiles[protein] = melting_curve(tm, slope) + np.random.normal(0, 0.02, len(TEMPERATURES))
    for protein in STABLE_COMPLEX:
        profiles[protein] = melting_curve(47.0) + np.random.normal(0, 0.01, len(TEMPERATURES))

    mitotic_g1s = {}
    mitotic_m = {}
    for protein, tm in zip(MITOTIC_COMPLEX, [40.0, 46.0, 58.0, 64.0]):
        noise = np.random.normal(0, 0.01, len(TEMPERATURES))
        mitotic_g1s[protein] = melting_curve(tm) + noise
        mitotic_m[protein] = melting_curve(53.0) + noise

    rows = []
    for stage, extra in (("G1_S", mitotic_g1s), ("M", mitotic_m)):
        for protein, profile in {**profiles, **extra}.items():
            row = {
                "gene_name": protein,
                "cell.cycle": stage,
                "replicates": 3,
                "min_qupm": 5,
            }
            row.update({fc_column(t): value for t, value in zip(TEMPERATURES, profile)})
            rows.append(row)

    table = pd.DataFrame(rows)

    # Rows the quality filter must remove
    low_quality = table.iloc[[0, 1]].copy()
    low_quality["gene_name"] = ["LOWREP", "LOWQUPM"]
    low_quality["replicates"] = [2, 3]
    low_quality["min_qupm"] = [5, 3]
    return pd.concat([table, low_quality], ignore_index=True)


@pytest.fixture
def complex_annotation(background_proteins):
    """Complex memberships: two real complexes, a random one and a too-small one"""
    rows = [{"protein": p, "complex_id": "CPX-STABLE"} for p in STABLE_COMPLEX]
    rows += [{"protein": p, "complex_id": "CPX-MITOTIC"} for p in MITOTIC_COMPLEX]
    rows += [{"protein": p, "complex_id": "CPX-RANDOM"} for p in background_proteins[10:14]]
    rows += [{"protein": p, "complex_id": "CPX-SMALL"} for p in background_proteins[20:22]]
    # Not measured
    rows += [{"protein": "ABSENT1", "complex_id": "CPX-ABSENT"},
             {"protein": "ABSENT2", "complex_id": "CPX-ABSENT"},
             {"protein": "ABSENT3", "complex_id": "CPX-ABSENT"}]
    return pd.DataFrame(rows)


@pytest.fixture
def ppi_annotation(background_proteins):
    """Pairwise interactions with STRING-like confidence scores"""
    rows = []
    for members in (STABLE_COMPLEX, MITOTIC_COMPLEX):
        for i, a in enumerate(members):
            for b in members[i + 1:]:
                rows.append({"x": a, "y": b, "combined_score": 950})
    for i in range(30, 40, 2):
        rows.append({"x": background_proteins[i], "y": background_proteins[i + 1], "combined_score": 920})
    for i in range(50, 56, 2):
        rows.append({"x": background_proteins[i], "y": background_proteins[i + 1], "combined_score": 400})
    return pd.DataFrame(rows)


@pytest.fixture
def small_config():
    """Small permutation counts so tests stay fast"""
    config = TPCAConfig()
    config.n_samples = 500
    config.n_roc_background = 300
    config.random_seed = 123
    return config


@pytest.fixture
def stage_matrices(tpp_table):
    from tpca_toolkit.preprocessing import build_condition_matrices

    return build_condition_matrices(tpp_table, verbose=False)
