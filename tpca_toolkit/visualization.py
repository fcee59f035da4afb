"""
Visualization Module for the TPCA Toolkit

ROC curves of coaggregation scores, volcano plots of differential
coaggregation, melting-curve overlays of protein pairs and the overlap of
candidate sets from the two candidate-reduction strategies.
"""

import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from matplotlib.figure import Figure
from matplotlib_venn import venn2
from typing import Optional, Sequence, Set, Tuple, Union

from .annotation import PAIR_SEPARATOR
from .statistical_analysis import DiffTPCAResult, TPCAResult


def _finish(fig: Figure, save_path: Optional[str], show: bool) -> Figure:
    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        print(f"✓ Saved figure: {save_path}")
    if show:
        plt.show()
    return fig


def _style_axes(ax) -> None:
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.spines["left"].set_linewidth(2)
    ax.spines["bottom"].set_linewidth(2)
    ax.tick_params(axis="both", which="major", labelsize=12, width=1.5, length=6)
    ax.grid(True, alpha=0.3)


def plot_roc_curves(
    tpca_results: Union[TPCAResult, Sequence[TPCAResult]],
    kind: str = "complex",
    compute_auc: bool = True,
    figsize: Tuple[int, int] = (7, 6),
    title: Optional[str] = None,
    save_path: Optional[str] = None,
    show: bool = True,
) -> Optional[Figure]:
    """
    Plot ROC curves of annotated vs. random pairs for one or more conditions.

    Parameters:
    -----------
    tpca_results : TPCAResult or list of TPCAResult
        Results computed with config.compute_roc enabled
    kind : str
        'complex' or 'ppi'
    compute_auc : bool
        Whether to show the AUC in the legend
    figsize : Tuple[int, int]
        Figure size (width, height)
    title : str, optional
        Plot title
    save_path : str, optional
        Where to save the figure
    show : bool
        Whether to call plt.show()

    Returns:
    --------
    Figure or None if no ROC data is available
    """
    if kind not in ("complex", "ppi"):
        raise ValueError("kind must be 'complex' or 'ppi'")
    if isinstance(tpca_results, TPCAResult):
        tpca_results = [tpca_results]

    curves = [
        (res.condition, getattr(res, f"{kind}_roc"), getattr(res, f"{kind}_auc"))
        for res in tpca_results
        if getattr(res, f"{kind}_roc") is not None
    ]
    if not curves:
        print(f"No {kind} ROC data to plot")
        return None

    fig, ax = plt.subplots(figsize=figsize)
    palette = sns.color_palette("Set1", n_colors=max(len(curves), 3))

    for color, (condition, roc, auc_value) in zip(palette, curves):
        label = condition or "condition"
        if compute_auc and auc_value is not None:
            label = f"{label} (AUC = {auc_value:.3f})"
        ax.plot(roc["fpr"], roc["tpr"], color=color, linewidth=2, label=label)

    ax.plot([0, 1], [0, 1], color="gray", linestyle="--", alpha=0.7)
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1.01)
    ax.set_xlabel("False positive rate", fontsize=14, fontweight="bold")
    ax.set_ylabel("True positive rate", fontsize=14, fontweight="bold")
    ax.set_title(title or f"{'Complex' if kind == 'complex' else 'PPI'} coaggregation ROC",
                 fontsize=14, fontweight="bold")
    _style_axes(ax)
    ax.legend(loc="lower right", frameon=True, fontsize=10)

    return _finish(fig, save_path, show)


def plot_diff_volcano(
    diff_result: Union[DiffTPCAResult, pd.DataFrame],
    p_threshold: float = 0.1,
    x_limit: Optional[float] = None,
    label_top_n: int = 10,
    figsize: Tuple[int, int] = (10, 7),
    title: Optional[str] = None,
    save_path: Optional[str] = None,
    show: bool = True,
) -> Optional[Figure]:
    """
    Volcano plot of differential coaggregation.

    x = distance difference (contrast - control; negative means the pair
    coaggregates more tightly in the contrast condition),
    y = -log10 raw p-value. Pairs with p_adj < p_threshold are highlighted.

    Parameters:
    -----------
    diff_result : DiffTPCAResult or pd.DataFrame
        Output of run_differential_coaggregation() or its results table
    p_threshold : float
        Adjusted p-value threshold for highlighting
    x_limit : float, optional
        Symmetric x-axis limit; defaults to the data range
    label_top_n : int
        Number of top significant pairs to label

    Returns:
    --------
    Figure or None if the table is empty
    """
    if isinstance(diff_result, DiffTPCAResult):
        df = diff_result.results.copy()
        default_title = f"Differential coaggregation: {diff_result.contrast_label} vs {diff_result.control_label}"
    else:
        df = diff_result.copy()
        default_title = "Differential coaggregation"

    if len(df) == 0:
        print("No data to plot")
        return None

    df["neg_log10_p"] = -np.log10(df["p_value"])
    significant = df["p_adj"] < p_threshold

    fig, ax = plt.subplots(figsize=figsize)
    ax.scatter(df.loc[~significant, "distance_difference"], df.loc[~significant, "neg_log10_p"],
               c="gray", alpha=0.5, s=25, label="Not significant")
    ax.scatter(df.loc[significant, "distance_difference"], df.loc[significant, "neg_log10_p"],
               c="red", alpha=0.8, s=35, label=f"p_adj < {p_threshold}")
    ax.axvline(x=0, color="black", linestyle="--", alpha=0.5)

    if label_top_n > 0:
        for _, row in df[significant].sort_values("p_value").head(label_top_n).iterrows():
            ax.annotate(row["pair"], (row["distance_difference"], row["neg_log10_p"]),
                        xytext=(5, 5), textcoords="offset points", fontsize=8, alpha=0.8)

    if x_limit is None:
        x_limit = float(np.abs(df["distance_difference"]).max()) * 1.05 or 1.0
    ax.set_xlim(-x_limit, x_limit)

    ax.set_xlabel("Distance difference (contrast - control)", fontsize=14, fontweight="bold")
    ax.set_ylabel("-Log10 p-value", fontsize=14, fontweight="bold")
    ax.set_title(title or default_title, fontsize=14, fontweight="bold")
    _style_axes(ax)
    ax.legend(loc="upper right", frameon=True, fontsize=10)

    print(f"Volcano plot: {len(df)} pairs, {int(significant.sum())} with p_adj < {p_threshold}")
    return _finish(fig, save_path, show)


def pair_profiles_long(diff_result: DiffTPCAResult, proteins: Sequence[str]) -> pd.DataFrame:
    """
    Long-format melting curves of ``proteins`` in both conditions.

    Returns:
    --------
    pd.DataFrame with columns protein, condition, replicate, temperature, fold_change
    """
    rows = []
    for condition, matrices in (
        (diff_result.control_label, diff_result.control_profiles),
        (diff_result.contrast_label, diff_result.contrast_profiles),
    ):
        for replicate, matrix in enumerate(matrices, start=1):
            for protein in proteins:
                if protein not in matrix.values.index:
                    continue
                for temperature, value in zip(matrix.temperatures, matrix.values.loc[protein]):
                    rows.append({
                        "protein": protein,
                        "condition": condition,
                        "replicate": replicate,
                        "temperature": temperature,
                        "fold_change": value,
                    })
    return pd.DataFrame(rows, columns=["protein", "condition", "replicate", "temperature", "fold_change"])


def plot_pair_profiles(
    diff_result: DiffTPCAResult,
    pair: Union[str, Tuple[str, str]],
    figsize: Tuple[int, int] = (8, 5),
    title: Optional[str] = None,
    save_path: Optional[str] = None,
    show: bool = True,
) -> Optional[Figure]:
    """
    Overlay the melting curves of both proteins of a pair in both conditions.

    Parameters:
    -----------
    diff_result : DiffTPCAResult
        Holds the profile matrices of both conditions
    pair : str or (str, str)
        Pair key ('A:B') or the two protein identifiers

    Returns:
    --------
    Figure or None if neither protein was measured
    """
    if isinstance(pair, str):
        proteins = pair.split(PAIR_SEPARATOR)
    else:
        proteins = list(pair)
    if len(proteins) != 2:
        raise ValueError(f"A pair must name exactly two proteins, got {proteins}")

    long_df = pair_profiles_long(diff_result, proteins)
    if long_df.empty:
        print(f"No profiles found for {proteins}")
        return None

    fig, ax = plt.subplots(figsize=figsize)
    sns.lineplot(
        data=long_df, x="temperature", y="fold_change",
        hue="protein", style="condition", units="replicate", estimator=None,
        marker="o", linewidth=2, ax=ax,
    )
    ax.set_xlabel("Temperature [°C]", fontsize=14, fontweight="bold")
    ax.set_ylabel("Fraction non-denatured", fontsize=14, fontweight="bold")
    ax.set_title(title or " - ".join(proteins), fontsize=14, fontweight="bold")
    _style_axes(ax)

    return _finish(fig, save_path, show)


def plot_candidate_overlap(
    first: Set[str],
    second: Set[str],
    labels: Tuple[str, str] = ("complex-centric", "PPI-centric"),
    figsize: Tuple[int, int] = (6, 5),
    title: Optional[str] = None,
    save_path: Optional[str] = None,
    show: bool = True,
) -> Figure:
    """
    Venn diagram of two sets of pairs (e.g. significant hits of both strategies).

    The overlap is descriptive only.
    """
    fig, ax = plt.subplots(figsize=figsize)
    if first and second:
        venn2([set(first), set(second)], set_labels=labels, ax=ax)
    else:
        ax.text(0.5, 0.5, f"{labels[0]}: {len(first)} pairs\n{labels[1]}: {len(second)} pairs",
                ha="center", va="center", fontsize=12)
        ax.set_axis_off()
    ax.set_title(title or "Overlap of significant pairs", fontsize=14, fontweight="bold")

    print(f"Overlap: {len(set(first) & set(second))} shared, "
          f"{len(set(first) - set(second))} only {labels[0]}, "
          f"{len(set(second) - set(first))} only {labels[1]}")
    return _finish(fig, save_path, show)
