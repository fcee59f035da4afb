"""
Annotation Module for the TPCA Toolkit

Loading and standardising protein complex and protein-protein interaction
(PPI) annotations. A PPI is an unordered pair of protein identifiers keyed by
the sorted identifiers joined with ':'.
"""

import pandas as pd
import os
from itertools import combinations
from typing import Dict, Iterable, Optional

from .validation import validate_annotation_columns

PAIR_SEPARATOR = ":"


def make_pair_key(protein_a: str, protein_b: str) -> str:
    """Order-independent key of a protein pair, e.g. ('NUP93', 'NUP205') -> 'NUP205:NUP93'."""
    a, b = sorted((str(protein_a), str(protein_b)))
    return f"{a}{PAIR_SEPARATOR}{b}"


def _read_table(path: str) -> pd.DataFrame:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Annotation file not found: {path}")
    ext = os.path.splitext(path)[1].lower()
    if ext in (".tsv", ".txt"):
        return pd.read_csv(path, sep="\t")
    if ext in (".xlsx", ".xls"):
        return pd.read_excel(path)
    return pd.read_csv(path)


def load_complex_annotation(
    path: str,
    column_mapping: Optional[Dict[str, str]] = None,
    verbose: bool = True,
) -> pd.DataFrame:
    """
    Load a protein -> complex membership table.

    Parameters:
    -----------
    path : str
        CSV/TSV/XLSX file with one row per (protein, complex) membership
    column_mapping : dict, optional
        Renames applied before validation, e.g. {'gene': 'protein', 'id': 'complex_id'}

    Returns:
    --------
    pd.DataFrame with columns 'protein' and 'complex_id'
    """
    table = _read_table(path)
    if column_mapping:
        table = table.rename(columns=column_mapping)
    validate_annotation_columns(table, ["protein", "complex_id"], "Complex annotation")

    table = table.dropna(subset=["protein", "complex_id"]).copy()
    table["protein"] = table["protein"].astype(str).str.strip()
    table["complex_id"] = table["complex_id"].astype(str).str.strip()
    table = table.drop_duplicates(subset=["protein", "complex_id"]).reset_index(drop=True)

    if verbose:
        print(f"✓ Loaded complex annotation: {table['complex_id'].nunique()} complexes, "
              f"{table['protein'].nunique()} proteins")
    return table


def standardize_ppi_annotation(ppis: pd.DataFrame) -> pd.DataFrame:
    """
    Bring a PPI table into canonical form.

    Adds the 'pair' key, drops self-interactions and keeps the first row of
    every pair (rows are assumed to be in order of preference).
    """
    validate_annotation_columns(ppis, ["x", "y"], "PPI annotation")

    table = ppis.dropna(subset=["x", "y"]).copy()
    table["x"] = table["x"].astype(str).str.strip()
    table["y"] = table["y"].astype(str).str.strip()
    table = table[table["x"] != table["y"]]
    table["pair"] = [make_pair_key(x, y) for x, y in zip(table["x"], table["y"])]
    table = table.drop_duplicates(subset=["pair"], keep="first").reset_index(drop=True)
    return table


def load_ppi_annotation(
    path: str,
    column_mapping: Optional[Dict[str, str]] = None,
    verbose: bool = True,
) -> pd.DataFrame:
    """
    Load a pairwise interaction table (e.g. a STRING export).

    Parameters:
    -----------
    path : str
        CSV/TSV/XLSX file with columns 'x' and 'y', optionally 'combined_score'
    column_mapping : dict, optional
        Renames applied first, e.g. {'protein1': 'x', 'protein2': 'y'}

    Returns:
    --------
    pd.DataFrame : Standardised PPI annotation with a 'pair' column
    """
    table = _read_table(path)
    if column_mapping:
        table = table.rename(columns=column_mapping)
    table = standardize_ppi_annotation(table)

    if verbose:
        print(f"✓ Loaded PPI annotation: {len(table)} unique pairs")
    return table


def filter_ppis_by_score(ppis: pd.DataFrame, min_score: float = 900,
                         score_column: str = "combined_score",
                         verbose: bool = True) -> pd.DataFrame:
    """Keep interactions with confidence score >= ``min_score``."""
    validate_annotation_columns(ppis, [score_column], "PPI annotation")
    filtered = ppis[ppis[score_column] >= min_score].reset_index(drop=True)
    if verbose:
        print(f"High-confidence PPIs ({score_column} >= {min_score}): {len(ppis)} -> {len(filtered)}")
    return filtered


def expand_complexes_to_ppis(complexes: pd.DataFrame) -> pd.DataFrame:
    """
    Expand complex memberships into all pairwise interactions within each complex.

    A pair shared by several complexes appears once per complex, so the result
    is keyed by ('pair', 'complex_id').

    Returns:
    --------
    pd.DataFrame with columns 'x', 'y', 'pair', 'complex_id'
    """
    validate_annotation_columns(complexes, ["protein", "complex_id"], "Complex annotation")

    rows = []
    for complex_id, members in complexes.groupby("complex_id", sort=True)["protein"]:
        proteins = sorted(set(members))
        for a, b in combinations(proteins, 2):
            rows.append({"x": a, "y": b, "pair": make_pair_key(a, b), "complex_id": complex_id})

    return pd.DataFrame(rows, columns=["x", "y", "pair", "complex_id"])


def restrict_to_complexes(complex_ppis: pd.DataFrame, complex_ids: Iterable[str]) -> pd.DataFrame:
    """Pairs belonging to one of ``complex_ids``; each pair once, member complexes joined by ';'."""
    validate_annotation_columns(complex_ppis, ["x", "y", "pair", "complex_id"], "Complex PPI annotation")

    keep = complex_ppis[complex_ppis["complex_id"].isin(set(complex_ids))]
    if keep.empty:
        return pd.DataFrame(columns=["x", "y", "pair", "complex_id"])

    grouped = (
        keep.groupby("pair", sort=True)
        .agg(x=("x", "first"), y=("y", "first"),
             complex_id=("complex_id", lambda ids: ";".join(sorted(set(ids)))))
        .reset_index()
    )
    return grouped[["x", "y", "pair", "complex_id"]]
