# stemness_index/core/config.py
"""Configuration for the stemness index pipeline.

Every setting has a code default and can be overridden by an environment
variable named `STEMNESS_<SECTION>_<KEY>`, e.g. `STEMNESS_TRAINING_L2=0.5`.
Overrides are parsed into the type of the default.
"""

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any, Union

from stemness_index.core.visualization_utils import DEFAULT_DPI, DEFAULT_FONT_FAMILY, DEFAULT_STYLE

logger = logging.getLogger(__name__)

ENV_PREFIX = "STEMNESS"

ConfigValueType = Union[bool, int, float, str, list[str]]

_TRUE_STRINGS = frozenset({"true", "yes", "1", "t", "y", "on"})


def _parse_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


_PARSERS: dict[type, Callable[[str], ConfigValueType]] = {
    bool: lambda raw: raw.strip().lower() in _TRUE_STRINGS,
    int: lambda raw: int(raw.strip()),
    float: lambda raw: float(raw.strip()),
    list: _parse_list,
    str: lambda raw: raw,
}

# Used when an override cannot be parsed
_FALLBACKS: dict[type, ConfigValueType] = {bool: False, int: 0, float: 0.0, list: [], str: ""}


def _convert_value(value: str, target_type: type) -> ConfigValueType:
    parser = _PARSERS.get(target_type)
    if parser is None:
        logger.warning(f"No parser for type '{target_type.__name__}'; keeping the raw string.")
        return value
    try:
        return parser(value)
    except ValueError:
        fallback = _FALLBACKS[target_type]
        logger.warning(
            f"Could not read '{value}' as {target_type.__name__}; using {fallback!r} instead."
        )
        return list(fallback) if isinstance(fallback, list) else fallback


def get_env(key: str, default: ConfigValueType) -> ConfigValueType:
    """Read `key` from the environment, typed like `default`.

    Args:
        key: Full variable name, e.g. "STEMNESS_ENRICHMENT_SEED".
        default: Value used when the variable is unset; its type decides
            how an override is parsed.

    Returns:
        The parsed override, or `default`.
    """
    raw = os.environ.get(key)
    if raw is None:
        return default
    return _convert_value(raw, type(default))


def _section(name: str, defaults: dict[str, ConfigValueType]) -> dict[str, Any]:
    prefix = f"{ENV_PREFIX}_{name.upper()}"
    return {key: get_env(f"{prefix}_{key.upper()}", value) for key, value in defaults.items()}


def get_paths_config() -> dict[str, Any]:
    """Directory layout: inputs under `data_dir`, outputs under `results_dir`."""
    return _section(
        "paths",
        {
            "data_dir": "data",
            "results_dir": "results",
            "raw_dir_name": "raw",
            "signatures_dir_name": "signatures",
            "scores_dir_name": "scores",
            "figures_dir_name": "figures",
            "tables_dir_name": "tables",
            "logs_dir": "logs",
        },
    )


def get_files_config() -> dict[str, Any]:
    """Default input file names, resolved against the raw data directory."""
    return _section(
        "files",
        {
            "reference_expression_file": "reference_expression.tsv",
            "reference_labels_file": "reference_labels.tsv",
            "target_expression_file": "target_expression.tsv",
            "gene_map_file": "gene_map.tsv",
            "sample_annotations_file": "sample_annotations.tsv",
        },
    )


def get_training_config() -> dict[str, Any]:
    """Penalties, solver limits and label layout for signature training."""
    return _section(
        "training",
        {
            "l1": 0.0,
            "l2": 1.0,
            "max_iter": 100,
            "max_inner_iter": 100,
            "tolerance": 1e-5,
            "foreground_label": "SC",
            "label_column": "Diffname_short",
            "sample_column": "UID",
            "identifier_scheme": "ensembl",
        },
    )


def get_scoring_config() -> dict[str, Any]:
    return _section(
        "scoring",
        {
            # "symbol", "tcga" (SYMBOL|ENTREZ row ids), "ensembl" or "entrez"
            "identifier_scheme": "symbol",
            "restrict_to_signature": False,
        },
    )


def get_enrichment_config() -> dict[str, Any]:
    """Set-size bounds, permutation budgets and sample filters for enrichment."""
    return _section(
        "enrichment",
        {
            "min_size": 5,
            "max_size": 500,
            "mutation_nperm": 1000,
            "feature_nperm": 10000,
            "primary_sample_types": ["01", "03"],
            "padj_threshold": 0.05,
            "seed": 10,
        },
    )


def _parse_figsize(raw: str, default: tuple[int, int] = (10, 6)) -> tuple[int, int]:
    parts = _parse_list(raw)
    try:
        width, height = (int(p) for p in parts)
    except ValueError:
        logger.warning(f"Figure size '{raw}' is not 'width,height'; using {default}.")
        return default
    return width, height


def get_visualization_config() -> dict[str, Any]:
    config = _section(
        "visualization",
        {
            "style": DEFAULT_STYLE,
            "default_figsize": "10,6",
            "default_dpi": DEFAULT_DPI,
            "font_family": DEFAULT_FONT_FAMILY,
            "figure_format": "png",
        },
    )
    config["default_figsize"] = _parse_figsize(config["default_figsize"])
    return config


def get_logging_config() -> dict[str, Any]:
    return _section(
        "logging",
        {
            "level": "INFO",
            "file_logging": True,
            "console_logging": True,
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "root_logger_name": "stemness_index",
        },
    )


def get_performance_config() -> dict[str, Any]:
    # 0 or 1 runs the leave-one-out loop sequentially; -1 uses every core
    return _section("performance", {"max_cpu_cores": 0})


def get_path(key: str) -> Path:
    """Absolute path of a configured directory.

    Raises:
        KeyError: If `key` names no known directory.
    """
    paths = get_paths_config()
    data_dir = Path(paths["data_dir"]).resolve()
    results_dir = Path(paths["results_dir"]).resolve()
    layout = {
        "data_dir": data_dir,
        "raw_data_dir": data_dir / paths["raw_dir_name"],
        "results_dir": results_dir,
        "signatures_dir": results_dir / paths["signatures_dir_name"],
        "scores_dir": results_dir / paths["scores_dir_name"],
        "figures_dir": results_dir / paths["figures_dir_name"],
        "tables_dir": results_dir / paths["tables_dir_name"],
        "logs_dir": Path(paths["logs_dir"]).resolve(),
    }
    if key not in layout:
        msg = f"Unknown path key: '{key}'. Available: {sorted(layout)}"
        logger.error(msg)
        raise KeyError(msg)
    return layout[key]


def get_file_path(file_key: str) -> Path:
    """Absolute path of a default input file, e.g. `get_file_path("gene_map")`.

    Raises:
        KeyError: If `file_key` names no configured file.
    """
    files = get_files_config()
    config_key = f"{file_key}_file"
    if config_key not in files:
        available = sorted(k.removesuffix("_file") for k in files)
        msg = f"Unknown file key: '{file_key}'. Available: {available}"
        logger.error(msg)
        raise KeyError(msg)
    return get_path("raw_data_dir") / files[config_key]


def setup_directories() -> None:
    """Create every output directory; a missing results or logs dir is fatal."""
    output_dirs = ("results_dir", "signatures_dir", "scores_dir", "figures_dir", "tables_dir")
    for key in (*output_dirs, "logs_dir"):
        directory = get_path(key)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.exception(f"Could not create directory {directory}: {e!s}")
            if key in ("results_dir", "logs_dir"):
                msg = f"Fatal: cannot create {directory}"
                raise SystemExit(msg) from e
        else:
            logger.debug(f"Directory ready: {directory}")
