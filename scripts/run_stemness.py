#!/usr/bin/env python
# scripts/run_stemness.py

"""Command-line entry point for the stemness index pipeline."""

import argparse
import functools
import logging
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stemness_index.core.config import get_logging_config, get_path, setup_directories
from stemness_index.core.data_loader import DataLoader
from stemness_index.core.exceptions import StemnessError
from stemness_index.core.logging import setup_logging
from stemness_index.explorer.enrichment import (
    butterfly_table,
    compare_modalities,
    scan_mutations,
    score_by_status,
)
from stemness_index.explorer.modality import METHYLATION, RNA, Modality, ModalityData
from stemness_index.explorer.visualization import ExplorerVisualization
from stemness_index.signature.pipeline import score_samples, train_signature
from stemness_index.signature.trainer import OneClassSignatureTrainer

setup_logging()
logger = setup_logging(__name__)
console = Console()


def pipeline_step(section_title: str) -> Callable[..., Any]:
    """Decorator printing a section rule and reporting the step's outcome.

    Pipeline errors are logged with the failing stage and turned into a
    False return value; anything else propagates.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> bool:
            console.rule(f"[bold blue]:play_button: {section_title} [/]", style="blue")
            start_time = time.time()
            success = True
            try:
                func(*args, **kwargs)
            except StemnessError as e:
                logger.error(f":cross_mark: [red]Stage '{e.stage}' failed:[/red] {e}")
                success = False
            except (FileNotFoundError, FileExistsError, ValueError) as e:
                logger.error(f":cross_mark: [red]Stage 'input' failed:[/red] {e}")
                success = False
            finally:
                elapsed = time.time() - start_time
                status_icon = ":white_check_mark:" if success else ":cross_mark:"
                status_color = "green" if success else "red"
                logger.info(
                    f"{status_icon} [{status_color}]Step '{section_title}' "
                    f"{'finished' if success else 'failed'} in {elapsed:.2f}s.[/{status_color}]"
                )
            return success

        return wrapper

    return decorator


def print_auc_table(auc: pd.Series) -> None:
    table = Table(title="Leave-one-out AUC", show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=4)
    table.add_column("Held-out sample", style="cyan", no_wrap=True)
    table.add_column("AUC", justify="right")
    table.add_column("Running mean", justify="right")
    running = auc.expanding().mean()
    for i, (sample, value) in enumerate(auc.items(), 1):
        table.add_row(str(i), str(sample), f"{value:.3f}", f"{running.iloc[i - 1]:.3f}")
    console.print(table)


@pipeline_step("Train Signature")
def run_train(args: argparse.Namespace) -> None:
    trainer = OneClassSignatureTrainer.from_config()
    if args.l1 is not None:
        trainer.set_params(l1=args.l1)
    if args.l2 is not None:
        trainer.set_params(l2=args.l2)
    result = train_signature(
        output_path=args.output,
        genes_path=args.genes,
        expression_path=args.expression,
        labels_path=args.labels,
        identifier_scheme=args.scheme,
        gene_map_path=args.gene_map,
        trainer=trainer,
        n_jobs=args.jobs,
    )
    print_auc_table(result.auc)
    if args.auc_output:
        result.validation.to_frame().to_csv(args.auc_output, sep="\t")
        logger.info(f":floppy_disk: [green]Saved AUC table:[/green] {args.auc_output}")
    console.print(
        f"Signature: {len(result.signature)} genes, mean LOO AUC "
        f"[bold]{result.validation.mean_auc:.3f}[/]"
    )


@pipeline_step("Score Cohort")
def run_score(args: argparse.Namespace) -> None:
    score_samples(
        signature_path=args.signature,
        output_path=args.output,
        expression_path=args.expression,
        identifier_scheme=args.scheme,
        gene_map_path=args.gene_map,
        restrict_to_signature=args.restrict_to_signature or None,
    )


def _load_modality(
    loader: DataLoader, modality: Modality, samples_path: str, mutations_path: str
) -> ModalityData:
    return ModalityData(
        modality=modality,
        samples=loader.load_sample_annotations(samples_path),
        mutations=loader.load_sample_annotations(mutations_path),
    )


@pipeline_step("Mutation Enrichment")
def run_enrich(args: argparse.Namespace) -> None:
    loader = DataLoader()
    rna = _load_modality(loader, RNA, args.rna_samples, args.rna_mutations)
    dna = _load_modality(loader, METHYLATION, args.dna_samples, args.dna_mutations)
    tables_dir = Path(args.output_dir) if args.output_dir else get_path("tables_dir")
    tables_dir.mkdir(parents=True, exist_ok=True)
    viz = ExplorerVisualization()

    if args.feature:
        outcome = compare_modalities(rna, dna, [args.cancer_type], args.feature)
        if not outcome.ok:
            console.print(Panel(outcome.message, title="Data input error", border_style="red"))
            return
        for label, result in outcome.results.items():
            path = tables_dir / f"enrichment_{args.cancer_type}_{args.feature}_{label}.tsv"
            result.table.to_csv(path, sep="\t", index=False)
            logger.info(f":floppy_disk: [green]Saved table:[/green] {path}")
        viz.plot_score_by_status(
            score_by_status(rna, dna, [args.cancer_type], args.feature), args.feature
        )
    else:
        outcomes = scan_mutations(rna, dna, args.cancer_type)
        table = butterfly_table(outcomes)
        path = tables_dir / f"butterfly_{args.cancer_type}.tsv"
        table.to_csv(path, sep="\t", index=False)
        logger.info(f":floppy_disk: [green]Saved table:[/green] {path}")
        viz.plot_nes_butterfly(table, args.cancer_type)

    figures_dir = Path(args.output_dir) if args.output_dir else get_path("figures_dir")
    figures_dir.mkdir(parents=True, exist_ok=True)
    viz.save_all(figures_dir)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stemness index: train signatures, score cohorts, explore enrichment.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG level logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    train = subparsers.add_parser("train", help="Train a one-class signature.")
    train.add_argument("--output", required=True, help="Signature TSV to write.")
    train.add_argument("--genes", default=None, help="Optional gene restriction list.")
    train.add_argument("--expression", default=None, help="Reference matrix (default: config).")
    train.add_argument("--labels", default=None, help="Sample label table (default: config).")
    train.add_argument("--scheme", default=None, help="Row identifier scheme (default: config).")
    train.add_argument("--gene-map", default=None, help="Identifier map (default: config).")
    train.add_argument("--l1", type=float, default=None, help="Override the L1 penalty.")
    train.add_argument("--l2", type=float, default=None, help="Override the L2 penalty.")
    train.add_argument("--jobs", type=int, default=None, help="Leave-one-out workers.")
    train.add_argument("--auc-output", default=None, help="Optional TSV for per-sample AUCs.")

    score = subparsers.add_parser("score", help="Score a cohort with a saved signature.")
    score.add_argument("--signature", required=True, help="Signature TSV to read.")
    score.add_argument("--output", required=True, help="Score TSV to write.")
    score.add_argument("--expression", default=None, help="Target matrix (default: config).")
    score.add_argument("--scheme", default=None, help="Row identifier scheme (default: config).")
    score.add_argument("--gene-map", default=None, help="Identifier map (default: config).")
    score.add_argument(
        "--restrict-to-signature",
        action="store_true",
        help="Drop target genes the signature does not cover instead of failing.",
    )

    enrich = subparsers.add_parser("enrich", help="Mutation enrichment of stemness scores.")
    enrich.add_argument("--cancer-type", required=True, help="TCGA cancer type, e.g. BRCA.")
    enrich.add_argument("--feature", default=None, help="Feature to test; omit to scan all.")
    enrich.add_argument("--rna-samples", required=True)
    enrich.add_argument("--rna-mutations", required=True)
    enrich.add_argument("--dna-samples", required=True)
    enrich.add_argument("--dna-mutations", required=True)
    enrich.add_argument("--output-dir", default=None, help="Where to write tables and figures.")
    return parser


def main(argv: list[str] | None = None) -> None:
    logging.captureWarnings(True)
    args = build_parser().parse_args(argv)

    if args.verbose:
        root_logger = logging.getLogger(get_logging_config()["root_logger_name"])
        for verbose_logger in (root_logger, logger):
            verbose_logger.setLevel(logging.DEBUG)
            for handler in verbose_logger.handlers:
                handler.setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled.")

    setup_directories()
    commands = {"train": run_train, "score": run_score, "enrich": run_enrich}
    start_time = time.time()
    success = commands[args.command](args)
    elapsed = time.time() - start_time

    status = (
        f"[bold green]'{args.command}' finished successfully[/]"
        if success
        else f"[bold red]'{args.command}' failed[/]"
    )
    console.print(
        Panel(
            f"{status}\nTotal execution time: {elapsed:.2f} seconds.",
            title="[bold]Pipeline Summary[/]",
            border_style="bold green" if success else "bold red",
        )
    )
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
