"""
Preprocessing Module for the TPCA Toolkit

Quality filtering of the TPP table and reshaping into per-condition profile
matrices (proteins x temperatures) with their temperature annotation.
"""

import pandas as pd
import numpy as np
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .data_import import DatasetConfig, identify_fold_change_columns, parse_temperatures
from .validation import ProfileMatrixError


@dataclass
class ProfileMatrix:
    """Relative-abundance profiles of one condition across a temperature ramp.

    Attributes
    ----------
    values : pd.DataFrame
        Index = unique protein identifiers, one column per temperature
    temperatures : np.ndarray
        Temperature of every column, same length and order as the columns
    condition : str
        Label of the condition (e.g. cell-cycle stage)
    """

    values: pd.DataFrame
    temperatures: np.ndarray = field(default_factory=lambda: np.array([]))
    condition: str = ""

    def __post_init__(self):
        self.temperatures = np.asarray(self.temperatures, dtype=float)
        if len(self.temperatures) != self.values.shape[1]:
            raise ProfileMatrixError(
                f"{len(self.temperatures)} temperatures given for "
                f"{self.values.shape[1]} profile columns"
            )
        if self.values.index.hasnans:
            raise ProfileMatrixError("Profile matrix contains rows without an identifier")
        if not self.values.index.is_unique:
            duplicated = self.values.index[self.values.index.duplicated()].unique()
            raise ProfileMatrixError(
                f"Row names must be unique, duplicated: {list(duplicated[:5])}"
            )

    @property
    def proteins(self) -> List[str]:
        return list(self.values.index)

    @property
    def n_temperatures(self) -> int:
        return len(self.temperatures)

    def subset(self, proteins: Sequence[str]) -> "ProfileMatrix":
        """Profiles of the requested proteins, in the requested order."""
        return ProfileMatrix(
            values=self.values.loc[list(proteins)],
            temperatures=self.temperatures.copy(),
            condition=self.condition,
        )


def filter_by_quality(
    data: pd.DataFrame,
    replicates_column: str = "replicates",
    qupm_column: str = "min_qupm",
    required_replicates: int = 3,
    min_qupm: int = 3,
    verbose: bool = True,
) -> pd.DataFrame:
    """
    Keep rows quantified in the required number of replicates with enough
    unique peptide matches.

    Rows pass when ``replicates == required_replicates`` and
    ``min_qupm > min_qupm``. Applying the filter twice changes nothing.

    Parameters:
    -----------
    data : pd.DataFrame
        TPP table
    replicates_column, qupm_column : str
        Quantification-confidence columns
    required_replicates : int
        Exact replicate count required
    min_qupm : int
        Exclusive lower bound on the peptide-match count

    Returns:
    --------
    pd.DataFrame : Filtered copy of the table
    """
    for col in (replicates_column, qupm_column):
        if col not in data.columns:
            raise KeyError(f"Quality column '{col}' not found in TPP table")

    keep = (data[replicates_column] == required_replicates) & (data[qupm_column] > min_qupm)
    filtered = data[keep].copy()

    if verbose:
        print(f"Quality filter ({replicates_column} == {required_replicates}, "
              f"{qupm_column} > {min_qupm}): {len(data)} -> {len(filtered)} rows")
    return filtered


def build_profile_matrix(
    data: pd.DataFrame,
    id_column: str = "gene_name",
    fold_change_pattern: str = r"mean\.fc",
    temperature_regex: str = r"^T?(\d+(?:\.\d+)?)",
    condition: str = "",
    verbose: bool = True,
) -> ProfileMatrix:
    """
    Reshape a (filtered) TPP table into a ProfileMatrix.

    Rows without identifier or with missing fold changes are dropped,
    duplicated identifiers keep their first occurrence and the columns are
    ordered by ascending temperature.

    Parameters:
    -----------
    data : pd.DataFrame
        TPP table of one condition
    id_column : str
        Column with protein identifiers
    fold_change_pattern : str
        Regex selecting the fold-change columns
    temperature_regex : str
        Regex extracting the temperature from a fold-change header
    condition : str
        Label stored on the matrix

    Returns:
    --------
    ProfileMatrix
    """
    fc_columns = identify_fold_change_columns(data, fold_change_pattern)
    if not fc_columns:
        raise ProfileMatrixError(
            f"No columns match the fold-change pattern '{fold_change_pattern}'"
        )
    temperatures = parse_temperatures(fc_columns, temperature_regex)
    if len(set(temperatures)) != len(temperatures):
        raise ProfileMatrixError(f"Duplicated temperatures in fold-change columns: {temperatures}")

    order = np.argsort(temperatures, kind="stable")
    fc_columns = [fc_columns[i] for i in order]
    temperatures = [temperatures[i] for i in order]

    subset = data[[id_column] + fc_columns].copy()
    n_input = len(subset)
    subset = subset.dropna(subset=[id_column])
    subset[id_column] = subset[id_column].astype(str).str.strip()
    subset = subset.dropna(subset=fc_columns)
    n_complete = len(subset)
    subset = subset.drop_duplicates(subset=[id_column], keep="first")

    values = subset.set_index(id_column)[fc_columns].astype(float)
    values.index.name = None

    if verbose:
        label = f" [{condition}]" if condition else ""
        print(f"✓ Profile matrix{label}: {values.shape[0]} proteins x {values.shape[1]} temperatures")
        if n_input != n_complete:
            print(f"  Removed {n_input - n_complete} rows with missing identifier or fold changes")
        if n_complete != len(values):
            print(f"  Removed {n_complete - len(values)} duplicated identifiers")

    return ProfileMatrix(values=values, temperatures=np.array(temperatures), condition=condition)


def build_condition_matrices(
    data: pd.DataFrame,
    config: Optional[DatasetConfig] = None,
    stages: Optional[Sequence[str]] = None,
    apply_quality_filter: bool = True,
    verbose: bool = True,
) -> Dict[str, ProfileMatrix]:
    """
    Split the TPP table by cell-cycle stage and build one profile matrix per stage.

    Parameters:
    -----------
    data : pd.DataFrame
        Full TPP table
    config : DatasetConfig, optional
        Column names and thresholds. Uses defaults if not provided.
    stages : Sequence[str], optional
        Stages to extract. Defaults to the control and contrast stage.
    apply_quality_filter : bool
        Whether to apply filter_by_quality() to each stage subset

    Returns:
    --------
    Dict[str, ProfileMatrix] : Stage label -> profile matrix
    """
    if config is None:
        config = DatasetConfig()
    if stages is None:
        stages = [config.control_stage, config.contrast_stage]

    if verbose:
        print("=== BUILDING PROFILE MATRICES ===\n")

    if config.stage_column not in data.columns:
        raise KeyError(f"Stage column '{config.stage_column}' not found in TPP table")

    matrices = {}
    for stage in stages:
        stage_data = data[data[config.stage_column] == stage]
        if verbose:
            print(f"Stage {stage}: {len(stage_data)} rows")
        if apply_quality_filter:
            stage_data = filter_by_quality(
                stage_data,
                replicates_column=config.replicates_column,
                qupm_column=config.qupm_column,
                required_replicates=config.required_replicates,
                min_qupm=config.min_qupm,
                verbose=verbose,
            )
        matrices[stage] = build_profile_matrix(
            stage_data,
            id_column=config.id_column,
            fold_change_pattern=config.fold_change_pattern,
            temperature_regex=config.temperature_regex,
            condition=stage,
            verbose=verbose,
        )

    return matrices
