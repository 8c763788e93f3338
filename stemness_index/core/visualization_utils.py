# stemness_index/core/visualization_utils.py
"""Plot defaults for the explorer figures.

Style, font and DPI here are code-level defaults; `config.get_visualization_config`
lets the environment override them.
"""

from typing import Any, Final

DEFAULT_STYLE: Final[str] = "seaborn-v0_8-whitegrid"
DEFAULT_FONT_FAMILY: Final[str] = "DejaVu Sans"
DEFAULT_DPI: Final[int] = 150
SAVE_DPI: Final[int] = 300

BASE_RC_PARAMS: Final[dict[str, Any]] = {
    "font.family": DEFAULT_FONT_FAMILY,
    "font.size": 10,
    "axes.titlesize": 14,
    "axes.titleweight": "bold",
    "axes.labelsize": 12,
    "xtick.labelsize": 10,
    "ytick.labelsize": 10,
    "figure.titlesize": 16,
    "figure.titleweight": "bold",
    "figure.facecolor": "white",
    "savefig.facecolor": "white",
}

# Mutation status boxplots: WT grey, Mutant green
STATUS_ORDER: Final[list[str]] = ["WT", "Mutant"]
STATUS_PALETTE: Final[dict[str, str]] = {"WT": "grey", "Mutant": "green"}

# NES butterfly scatter
POINT_COLOR_SIGNIFICANT: Final[str] = "red"
POINT_COLOR_NOT_SIGNIFICANT: Final[str] = "black"
