"""
Export Module for the TPCA Toolkit

This module writes result tables, timestamped configuration files and a
Jupyter notebook report combining narrative text, tables and figures, so that
an analysis can be inspected and reproduced later.
"""

import base64
import pandas as pd
import nbformat
import os
from dataclasses import asdict
from datetime import datetime
from typing import Dict, Any, Optional, List

from .data_import import DatasetConfig
from .statistical_analysis import TPCAConfig


def export_result_tables(
    tables: Dict[str, pd.DataFrame],
    output_dir: str = ".",
    output_prefix: str = "tpca_analysis",
    verbose: bool = True,
) -> Dict[str, str]:
    """
    Export result tables as CSV files.

    Parameters:
    -----------
    tables : dict
        Table name -> DataFrame. None entries are skipped.
    output_dir : str
        Directory to write to (created if missing)
    output_prefix : str
        Prefix for output filenames

    Returns:
    --------
    dict
        Table name -> exported file path
    """
    os.makedirs(output_dir, exist_ok=True)

    exported_files = {}
    for name, table in tables.items():
        if table is None:
            continue
        path = os.path.join(output_dir, f"{output_prefix}_{name}.csv")
        table.to_csv(path, index=False)
        exported_files[name] = path
        if verbose:
            print(f"{name} ({len(table)} rows) exported to: {path}")

    return exported_files


def create_config_dict(
    dataset_config: Optional[DatasetConfig] = None,
    tpca_config: Optional[TPCAConfig] = None,
    **kwargs,
) -> Dict[str, Any]:
    """
    Flatten the dataset and testing configuration into one dictionary.

    Extra keyword arguments (annotation files, candidate thresholds, output
    settings) are added on top.
    """
    config_dict = {}
    config_dict.update(asdict(dataset_config or DatasetConfig()))
    config_dict.update(vars(tpca_config or TPCAConfig()))
    config_dict.update(kwargs)
    return config_dict


def export_timestamped_config(
    config_dict: Dict[str, Any],
    output_dir: str = ".",
    output_prefix: str = "tpca_analysis",
    analysis_description: str = "Differential coaggregation analysis",
    computed_values: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Export analysis configuration as a timestamped Python file.

    Parameters:
    -----------
    config_dict : dict
        Dictionary containing all configuration parameters
    output_dir : str
        Directory of the configuration file
    output_prefix : str
        Prefix for the configuration filename
    analysis_description : str
        Description of the analysis
    computed_values : dict, optional
        Additional computed values to include as comments

    Returns:
    --------
    str
        Path to the exported configuration file
    """

    os.makedirs(output_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    config_file = os.path.join(output_dir, f"{output_prefix}_config_{timestamp}.py")

    print(f"Exporting analysis configuration to: {config_file}")

    with open(config_file, "w", encoding="utf-8") as f:
        f.write(
            "# =============================================================================\n"
        )
        f.write("# TPCA ANALYSIS CONFIGURATION\n")
        f.write(f"# Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
        f.write(f"# Analysis: {analysis_description}\n")
        f.write(
            "# =============================================================================\n\n"
        )

        section_configs = [
            (
                1,
                "INPUT FILES AND PATHS",
                ["url", "local_file", "data_dir", "sheet_name", "complex_annotation_file", "ppi_annotation_file"],
            ),
            (
                2,
                "DATA LAYOUT",
                [
                    "id_column",
                    "stage_column",
                    "control_stage",
                    "contrast_stage",
                    "fold_change_pattern",
                    "temperature_regex",
                ],
            ),
            (
                3,
                "QUALITY FILTER",
                ["replicates_column", "qupm_column", "required_replicates", "min_qupm"],
            ),
            (
                4,
                "COAGGREGATION TESTING",
                [
                    "n_samples",
                    "min_complex_size",
                    "distance_metric",
                    "correction_method",
                    "compute_roc",
                    "n_roc_background",
                ],
            ),
            (
                5,
                "CANDIDATE SELECTION",
                ["min_ppi_score", "complex_centric_threshold", "ppi_centric_threshold"],
            ),
            (
                6,
                "SIGNIFICANCE AND OUTPUT SETTINGS",
                ["p_adj_threshold", "random_seed", "output_dir", "output_prefix"],
            ),
        ]

        for section_num, section_name, param_names in section_configs:
            _write_config_section(f, section_name, config_dict, param_names, section_num)

        if computed_values:
            f.write(
                "# =============================================================================\n"
            )
            f.write("# COMPUTED VALUES (for reference)\n")
            f.write(
                "# =============================================================================\n"
            )
            for key, value in computed_values.items():
                f.write(f"# {key}: {value}\n")

    return config_file


def _write_config_section(
    file_handle,
    section_name: str,
    config_dict: Dict[str, Any],
    param_names: List[str],
    section_number: int = 1,
) -> None:
    """Write a configuration section to file."""

    file_handle.write(
        "# =============================================================================\n"
    )
    file_handle.write(f"# {section_number}. {section_name}\n")
    file_handle.write(
        "# =============================================================================\n"
    )

    for param in param_names:
        if param in config_dict:
            file_handle.write(f"{param} = {repr(config_dict[param])}\n")

    file_handle.write("\n")


def _table_output(table: pd.DataFrame, max_rows: int, execution_count: int):
    shown = table.head(max_rows)
    return nbformat.v4.new_output(
        "execute_result",
        data={
            "text/html": shown.to_html(index=False, float_format=lambda v: f"{v:.4g}"),
            "text/plain": shown.to_string(index=False, float_format=lambda v: f"{v:.4g}"),
        },
        execution_count=execution_count,
    )


def _figure_output(figure_path: str):
    with open(figure_path, "rb") as f:
        encoded = base64.b64encode(f.read()).decode("ascii")
    return nbformat.v4.new_output("display_data", data={"image/png": encoded})


def write_analysis_report(
    sections: List[Dict[str, Any]],
    output_file: str,
    title: str = "Differential coaggregation analysis",
    max_table_rows: int = 20,
) -> str:
    """
    Render the analysis as a Jupyter notebook with pre-rendered outputs.

    Every section becomes a markdown cell ('heading' and optional 'text'),
    followed by a code cell when the section has a 'table' (pd.DataFrame,
    shown as a rich table output) or a 'figure' (path to a PNG, embedded as
    an image output). The optional 'code' entry is used as the cell source.

    Returns:
    --------
    str : Path of the written notebook
    """
    report_dir = os.path.dirname(os.path.abspath(output_file))
    os.makedirs(report_dir, exist_ok=True)

    nb = nbformat.v4.new_notebook()
    nb.cells.append(nbformat.v4.new_markdown_cell(
        f"# {title}\n\n_Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}_"
    ))

    execution_count = 0
    for section in sections:
        markdown = f"## {section['heading']}"
        if section.get("text"):
            markdown += f"\n\n{section['text'].strip()}"
        table = section.get("table")
        if table is not None and len(table) > max_table_rows:
            markdown += f"\n\n_Showing {max_table_rows} of {len(table)} rows._"
        nb.cells.append(nbformat.v4.new_markdown_cell(markdown))

        figure = section.get("figure")
        if not figure or not os.path.exists(figure):
            figure = None
        if table is None and figure is None:
            continue

        execution_count += 1
        cell = nbformat.v4.new_code_cell(section.get("code", ""), execution_count=execution_count)
        if table is not None:
            cell.outputs.append(_table_output(table, max_table_rows, execution_count))
        if figure is not None:
            cell.outputs.append(_figure_output(figure))
        nb.cells.append(cell)

    nbformat.validate(nb)
    nbformat.write(nb, output_file)

    print(f"Report written to: {output_file} ({len(nb.cells)} cells)")
    return output_file
