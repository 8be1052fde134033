"""Command-line interface for nbayes.

Trains and queries a classifier persisted in a SQLite database, with
rich terminal output using the ``click`` and ``rich`` libraries. Tokens
are passed as separate arguments; nbayes does not tokenize text.

Usage::

    nbayes --db model.db train spam buy now
    nbayes --db model.db train ham meeting today
    nbayes --db model.db classify buy
    nbayes --db model.db stats
    nbayes --db model.db prune 1
"""

from __future__ import annotations

import json
import logging
import sqlite3
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .classifier import Classifier
from .config import ClassifierConfig
from .errors import NBayesError
from .models import ProbabilityResult
from .stores import SQLiteStore

console = Console()
err_console = Console(stderr=True)

# failures reported as "Error: ..." with exit status 1 instead of a traceback
CLI_ERRORS = (NBayesError, sqlite3.Error, OSError)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/] {error}")
    sys.exit(1)


def _classifier(ctx: click.Context) -> Classifier:
    """Open the store named on the command line, closing it on exit."""
    opts = ctx.obj
    try:
        store = SQLiteStore(opts["db"])
    except CLI_ERRORS as e:
        _fail(e)
    ctx.call_on_close(store.close)
    return Classifier(store=store, config=opts["config"])


@click.group()
@click.version_option(package_name="nbayes")
@click.option("--db", type=click.Path(dir_okay=False, path_type=Path), envvar="NBAYES_DB",
              default="nbayes.db", show_default=True, help="SQLite database file.")
@click.option("--binarize/--no-binarize", default=None,
              help="Count each token once per call.")
@click.option("--uniform-priors/--empirical-priors", "assume_uniform", default=None,
              help="Treat all categories as equally likely.")
@click.option("-k", "--smoothing", "k", type=float, default=None,
              help="Additive smoothing constant (default 1).")
@click.option("--log-vocab/--no-log-vocab", default=None,
              help="Report vocabulary size as a natural log.")
@click.option("--env-file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="Read NBAYES_* settings from a .env file.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(
    ctx: click.Context,
    db: Path,
    binarize: bool | None,
    assume_uniform: bool | None,
    k: float | None,
    log_vocab: bool | None,
    env_file: Path | None,
    verbose: bool,
) -> None:
    """Naive Bayes token classifier.

    Train categories from pre-tokenized input and score new token sets
    against them.
    """
    _setup_logging(verbose)
    overrides = {
        name: value
        for name, value in (
            ("binarize", binarize),
            ("assume_uniform", assume_uniform),
            ("k", k),
            ("log_vocab", log_vocab),
        )
        if value is not None
    }
    try:
        base = ClassifierConfig.from_env(env_file=env_file)
        config = ClassifierConfig.from_dict({**base.to_dict(), **overrides})
    except NBayesError as e:
        _fail(e)
    ctx.obj = {"db": db, "config": config}


@main.command()
@click.argument("category")
@click.argument("tokens", nargs=-1, required=True)
@click.pass_context
def train(ctx: click.Context, category: str, tokens: tuple[str, ...]) -> None:
    """Train CATEGORY with TOKENS.

    Example: nbayes train spam buy cheap pills now
    """
    clf = _classifier(ctx)
    try:
        clf.train(tokens, category)
    except CLI_ERRORS as e:
        _fail(e)
    console.print(f"Trained [cyan]{category}[/] with {len(tokens)} tokens")


@main.command()
@click.argument("category")
@click.argument("tokens", nargs=-1, required=True)
@click.pass_context
def untrain(ctx: click.Context, category: str, tokens: tuple[str, ...]) -> None:
    """Remove TOKENS previously trained into CATEGORY.

    Untrained tokens also leave the shared vocabulary.
    """
    clf = _classifier(ctx)
    try:
        clf.untrain(tokens, category)
    except CLI_ERRORS as e:
        _fail(e)
    console.print(f"Untrained [cyan]{category}[/]")


@main.command()
@click.argument("tokens", nargs=-1)
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
@click.pass_context
def classify(ctx: click.Context, tokens: tuple[str, ...], output: str) -> None:
    """Score TOKENS against every trained category.

    Example: nbayes classify buy now
    """
    clf = _classifier(ctx)
    try:
        result = clf.classify(tokens)
    except CLI_ERRORS as e:
        _fail(e)

    if output == "json":
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _render_result(result)


@main.command()
@click.argument("threshold", type=float)
@click.pass_context
def prune(ctx: click.Context, threshold: float) -> None:
    """Drop tokens whose count is at or under THRESHOLD."""
    clf = _classifier(ctx)
    try:
        removed = clf.prune_below(threshold)
    except CLI_ERRORS as e:
        _fail(e)
    console.print(f"Pruned {len(removed)} tokens")


@main.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Print example share and token totals per category."""
    clf = _classifier(ctx)
    try:
        report = clf.category_stats()
    except CLI_ERRORS as e:
        _fail(e)
    if report:
        click.echo(report)
    else:
        console.print("[dim]No categories trained yet.[/]")


@main.command("delete-category")
@click.argument("category")
@click.pass_context
def delete_category(ctx: click.Context, category: str) -> None:
    """Remove CATEGORY and all of its counts."""
    clf = _classifier(ctx)
    try:
        clf.delete_category(category)
    except CLI_ERRORS as e:
        _fail(e)
    console.print(f"Deleted category [cyan]{category}[/]")


@main.command()
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def export(ctx: click.Context, path: Path) -> None:
    """Write a JSON snapshot of the database to PATH."""
    clf = _classifier(ctx)
    try:
        clf.store.save(path)
    except CLI_ERRORS as e:
        _fail(e)
    console.print(f"[dim]Snapshot saved to {path}[/]")


# ------------------------------------------------------------------
# Rich rendering helpers
# ------------------------------------------------------------------

def _render_result(result: ProbabilityResult) -> None:
    """Render a ProbabilityResult as a rich table."""
    best = result.best_category()
    table = Table(title="Classification")
    table.add_column("Category", style="cyan")
    table.add_column("Score", justify="right")

    for category, score in result.ranked():
        style = "bold green" if category == best else ""
        table.add_row(category, f"{score:.4f}", style=style)

    console.print(table)
    console.print(f"Best category: [bold green]{best}[/]")


if __name__ == "__main__":
    main()
