# stemness_index/explorer/visualization.py
"""Plots for the stemness explorer."""

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns
from matplotlib.figure import Figure

from stemness_index.core.config import get_visualization_config
from stemness_index.core.visualization_utils import (
    BASE_RC_PARAMS,
    DEFAULT_DPI,
    DEFAULT_FONT_FAMILY,
    DEFAULT_STYLE,
    POINT_COLOR_NOT_SIGNIFICANT,
    POINT_COLOR_SIGNIFICANT,
    SAVE_DPI,
    STATUS_ORDER,
    STATUS_PALETTE,
)

logger = logging.getLogger(__name__)


class ExplorerVisualization:
    """Generates the score-by-status and NES comparison figures."""

    def __init__(self):
        self.figures: dict[str, Figure] = {}
        self.viz_config = get_visualization_config()

        style = self.viz_config.get("style") or DEFAULT_STYLE
        base_params = BASE_RC_PARAMS.copy()
        base_params["font.family"] = self.viz_config.get("font_family") or DEFAULT_FONT_FAMILY
        plt.style.use(style)
        plt.rcParams.update(base_params)
        logger.debug(f"Using plot style: {style}")

    def _check_required_columns(
        self, df: pd.DataFrame, required_cols: list[str], plot_name: str
    ) -> bool:
        missing_cols = [col for col in required_cols if col not in df.columns]
        if missing_cols:
            logger.error(f"Cannot generate {plot_name}: Missing columns: {missing_cols}")
            return False
        if df.empty:
            logger.error(f"Cannot generate {plot_name}: Input DataFrame is empty.")
            return False
        return True

    def plot_score_by_status(
        self, long_df: pd.DataFrame, feature: str, figsize: tuple[int, int] | None = None
    ) -> Figure | None:
        """Boxplots of mRNAsi and mDNAsi by mutation status, one panel per index.

        Expects the long table produced by `enrichment.score_by_status`.
        """
        plot_name = "Stemness by Status"
        if not self._check_required_columns(long_df, ["index", "status", "value"], plot_name):
            return None
        indices = list(dict.fromkeys(long_df["index"]))
        fig_size = figsize or self.viz_config.get("default_figsize", (10, 6))
        fig_dpi = self.viz_config.get("default_dpi") or DEFAULT_DPI
        fig, axes = plt.subplots(1, len(indices), figsize=fig_size, dpi=fig_dpi, squeeze=False)
        for ax, index_name in zip(axes[0], indices):
            subset = long_df[long_df["index"] == index_name]
            sns.boxplot(
                data=subset,
                x="status",
                y="value",
                hue="status",
                order=STATUS_ORDER,
                hue_order=STATUS_ORDER,
                palette=STATUS_PALETTE,
                showfliers=False,
                legend=False,
                ax=ax,
            )
            sns.stripplot(
                data=subset,
                x="status",
                y="value",
                order=STATUS_ORDER,
                color="black",
                size=2,
                jitter=0.1,
                ax=ax,
            )
            ax.set_xlabel("")
            ax.set_ylabel(index_name)
            sns.despine(ax=ax)
        fig.suptitle(feature)
        fig.tight_layout()
        self.figures[f"status_{feature}"] = fig
        return fig

    def plot_nes_butterfly(
        self, table: pd.DataFrame, cancer_type: str, figsize: tuple[int, int] | None = None
    ) -> Figure | None:
        """DNAss vs RNAss NES scatter from `enrichment.butterfly_table`."""
        plot_name = "NES Butterfly"
        required_cols = ["ID", "NES.RNA", "NES.DNA", "significant"]
        if not self._check_required_columns(table, required_cols, plot_name):
            return None
        fig_size = figsize or self.viz_config.get("default_figsize", (10, 6))
        fig_dpi = self.viz_config.get("default_dpi") or DEFAULT_DPI
        fig, ax = plt.subplots(figsize=fig_size, dpi=fig_dpi)
        colors = table["significant"].map(
            {True: POINT_COLOR_SIGNIFICANT, False: POINT_COLOR_NOT_SIGNIFICANT}
        )
        ax.scatter(table["NES.DNA"], table["NES.RNA"], c=colors, s=18)
        significant = table.loc[table["significant"]]
        for label, x, y in zip(significant["ID"], significant["NES.DNA"], significant["NES.RNA"]):
            ax.annotate(label, (x, y), fontsize=8)
        ax.axvline(0, color="black", linewidth=0.8)
        ax.axhline(0, color="black", linewidth=0.8)
        ax.set_xlabel("DNAss Enrichment Score (NES)")
        ax.set_ylabel("RNAss Enrichment Score (NES)")
        ax.set_title(f"DNAss vs RNAss Mutation Enrichment ({cancer_type})")
        fig.tight_layout()
        self.figures[f"butterfly_{cancer_type}"] = fig
        return fig

    def save_all(self, output_dir: Path, fmt: str | None = None) -> list[Path]:
        """Write every generated figure and close it."""
        fmt = fmt or self.viz_config.get("figure_format", "png")
        paths = []
        for name, fig in self.figures.items():
            path = output_dir / f"{name}.{fmt}"
            fig.savefig(path, dpi=SAVE_DPI, bbox_inches="tight")
            plt.close(fig)
            paths.append(path)
            logger.info(f"Saved figure: {path}")
        self.figures.clear()
        return paths
