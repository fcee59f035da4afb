"""
Data Import Module for the TPCA Toolkit

Functions for fetching the published thermal proteome profiling spreadsheet,
loading a worksheet and parsing temperatures out of fold-change column headers.
"""

import pandas as pd
import re
import os
import requests
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class DatasetConfig:
    """Configuration describing where the TPP table lives and how it is laid out.

    Attributes
    ----------
    url : str, optional
        HTTPS location of the supplementary spreadsheet. Only needed when
        ``local_file`` does not exist yet.
    local_file : str
        Filename the spreadsheet is cached under. Relative names are resolved
        against ``data_dir``.
    data_dir : str
        Folder holding the cached spreadsheet (default: working directory)
    sheet_name : str
        Worksheet holding the TPP-TR table
    id_column : str
        Column with protein identifiers (row names of the profile matrices)
    stage_column : str
        Column naming the cell-cycle stage of each row
    control_stage, contrast_stage : str
        Stages compared in the differential analysis
    replicates_column, qupm_column : str
        Quantification-confidence columns
    required_replicates : int
        Rows must be quantified in exactly this many replicates
    min_qupm : int
        Rows must have strictly more quantified unique peptide matches
    fold_change_pattern : str
        Regex selecting the mean fold-change columns
    temperature_regex : str
        Regex whose first group is the temperature in a fold-change header
    """

    url: Optional[str] = None
    local_file: str = "becher_et_al_2018_table_s4.xlsx"
    data_dir: str = "."
    sheet_name: str = "TableS4_TPP-TR"
    id_column: str = "gene_name"
    stage_column: str = "cell.cycle"
    control_stage: str = "G1_S"
    contrast_stage: str = "M"
    replicates_column: str = "replicates"
    qupm_column: str = "min_qupm"
    required_replicates: int = 3
    min_qupm: int = 3
    fold_change_pattern: str = r"mean\.fc"
    temperature_regex: str = r"^T?(\d+(?:\.\d+)?)"
    request_timeout: int = 60


def download_dataset(url: str, destination: str, timeout: int = 60,
                     verbose: bool = True) -> str:
    """
    Download a remote file once, caching it locally by filename.

    Parameters:
    -----------
    url : str
        HTTPS address of the file
    destination : str
        Local path to write to. If it already exists nothing is downloaded.
    timeout : int
        Request timeout in seconds

    Returns:
    --------
    str : Path to the local file
    """
    if os.path.exists(destination):
        if verbose:
            print(f"✓ Using cached dataset: {destination}")
        return destination

    if not url:
        raise FileNotFoundError(
            f"Dataset not found at {destination} and no download URL configured"
        )

    if verbose:
        print(f"Downloading dataset from {url} ...")

    response = requests.get(url, timeout=timeout)
    response.raise_for_status()

    directory = os.path.dirname(destination)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(destination, "wb") as f:
        f.write(response.content)

    if verbose:
        print(f"✓ Saved {len(response.content):,} bytes to {destination}")
    return destination


def load_tpp_sheet(path: str, sheet_name: str, verbose: bool = True) -> pd.DataFrame:
    """
    Load one worksheet of the TPP spreadsheet.

    Parameters:
    -----------
    path : str
        Path to the .xlsx file
    sheet_name : str
        Name of the worksheet to read

    Returns:
    --------
    pd.DataFrame : The worksheet as a table
    """
    if verbose:
        print("=== LOADING TPP DATA ===\n")

    if not os.path.exists(path):
        raise FileNotFoundError(f"TPP data file not found: {path}")

    table = pd.read_excel(path, sheet_name=sheet_name, engine="openpyxl")

    if verbose:
        print(f"✓ Loaded sheet '{sheet_name}': {table.shape}")
    return table


def identify_fold_change_columns(data: pd.DataFrame,
                                 pattern: str = r"mean\.fc") -> List[str]:
    """
    Find the columns following the mean fold-change naming convention.

    Parameters:
    -----------
    data : pd.DataFrame
        TPP table
    pattern : str
        Regular expression searched in every column name

    Returns:
    --------
    List[str] : Matching column names in table order
    """
    regex = re.compile(pattern)
    return [col for col in data.columns if regex.search(str(col))]


def parse_temperature(column: str, temperature_regex: str = r"^T?(\d+(?:\.\d+)?)") -> float:
    """
    Extract the temperature from a fold-change column header.

    Handles formats like: T37_mean.fc -> 37.0, T40.4_mean.fc -> 40.4

    Parameters:
    -----------
    column : str
        Column header
    temperature_regex : str
        Pattern whose first capture group is the temperature

    Returns:
    --------
    float : Temperature in degrees Celsius
    """
    match = re.search(temperature_regex, str(column).strip())
    if not match:
        raise ValueError(f"Could not parse a temperature from column '{column}'")
    return float(match.group(1))


def parse_temperatures(columns: List[str],
                       temperature_regex: str = r"^T?(\d+(?:\.\d+)?)") -> List[float]:
    """Parse the temperature of every header in ``columns``, keeping their order."""
    return [parse_temperature(col, temperature_regex) for col in columns]


def resolve_dataset_path(config: DatasetConfig) -> str:
    """Local path of the configured spreadsheet: ``local_file`` as given if absolute, else under ``data_dir``."""
    if os.path.isabs(config.local_file):
        return config.local_file
    return os.path.join(config.data_dir, config.local_file)
