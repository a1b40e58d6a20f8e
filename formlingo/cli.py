"""
Command-line interface for formlingo.

Every command works on a JSON project file (see ``formlingo.session``).
Commands that edit the form write it back in place unless ``--output`` is
given.

Usage:
    formlingo info survey.json
    formlingo rename survey.json age years
    formlingo refs survey.json --node years
    formlingo export-translations survey.json -o survey.tsv
    formlingo import-translations survey.json survey.tsv
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from formlingo import __version__
from formlingo.config import APP_NAME
from formlingo.models import FormNode
from formlingo.session import FormSession

app = typer.Typer(
    name=APP_NAME,
    help="formlingo: reference-tracking and translation tools for XForms-style forms",
    add_completion=False,
)
console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"formlingo v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False, "--verbose",
        help="Show debug logging",
    ),
):
    """formlingo: keep form logic and translations in sync."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


# ==========================================================================
# Helpers
# ==========================================================================

def _load(form: Path) -> FormSession:
    try:
        return FormSession.load(form)
    except FileNotFoundError:
        console.print(f"[red]Error:[/] File not found: {form}")
        raise typer.Exit(1)
    except (json.JSONDecodeError, KeyError, ValueError) as e:
        console.print(f"[red]Error:[/] Cannot read {form}: {e}")
        raise typer.Exit(1)


def _node(session: FormSession, ref: str) -> FormNode:
    node = session.get_node(ref)
    if node is None:
        console.print(f"[red]Error:[/] No question '{ref}'")
        raise typer.Exit(1)
    return node


def _save(session: FormSession, form: Path, output: Optional[Path]) -> None:
    path = session.save(output or form)
    console.print(f"[green]✓[/] Saved {path}")


def _describe(session: FormSession, node: FormNode) -> str:
    return session.tree.get_absolute_path(node) or node.node_id


def _edit(action, *args) -> None:
    try:
        action(*args)
    except ValueError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)


FormArg = typer.Argument(..., help="Form project file (JSON)")
OutputOpt = typer.Option(None, "--output", "-o", help="Write to this file instead")


# ==========================================================================
# Commands
# ==========================================================================

@app.command()
def info(form: Path = FormArg):
    """Show languages, questions and warnings of a form."""
    session = _load(form)
    console.print(f"[bold]{form.name}[/]\n")

    table = Table(title="Form Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    languages = session.itext.get_languages()
    table.add_row("Languages", ", ".join(languages) or "-")
    table.add_row("Default language", session.itext.default_language or "-")
    table.add_row("Questions", str(len(session.tree)))
    table.add_row("Translation items", str(len(session.collect_items())))
    table.add_row("References", str(len(session.logic.all)))
    table.add_row("Warnings", str(len(session.diagnostics)))
    console.print(table)

    tree = Table(title="Questions")
    tree.add_column("Path", style="cyan")
    tree.add_column("Kind")
    tree.add_column("Label", style="green")
    for node in session.tree.walk():
        tree.add_row(_describe(session, node), node.kind, session.display_name(node))
    console.print(tree)


@app.command()
def refs(
    form: Path = FormArg,
    node_ref: Optional[str] = typer.Option(
        None, "--node", "-n",
        help="Only references from or to this question (id or path)",
    ),
):
    """List the path references found in question logic."""
    session = _load(form)
    records = session.logic.all
    if node_ref:
        node = _node(session, node_ref)
        records = session.logic.references_from(node) + session.logic.references_to(node)

    table = Table(title=f"References ({len(records)})")
    table.add_column("Question", style="cyan")
    table.add_column("Property")
    table.add_column("Path", style="green")
    table.add_column("Target")
    for record in records:
        source = session.tree.get_by_ufid(record.node)
        target = session.tree.get_by_ufid(record.ref) if record.ref else None
        table.add_row(
            source.node_id if source else record.node,
            record.property,
            record.path,
            target.node_id if target else "[red]unknown[/]",
        )
    console.print(table)


@app.command()
def rename(
    form: Path = FormArg,
    node_ref: str = typer.Argument(..., help="Question id or path"),
    new_id: str = typer.Argument(..., help="New question id"),
    output: Optional[Path] = OutputOpt,
):
    """Rename a question and update everything that refers to it."""
    session = _load(form)
    node = _node(session, node_ref)
    old = _describe(session, node)
    _edit(session.rename, node, new_id)
    console.print(f"Renamed {old} → {_describe(session, node)}")
    _save(session, form, output)


@app.command()
def move(
    form: Path = FormArg,
    node_ref: str = typer.Argument(..., help="Question id or path"),
    parent_ref: Optional[str] = typer.Option(
        None, "--parent", "-p",
        help="New parent group (top level if omitted)",
    ),
    position: Optional[int] = typer.Option(
        None, "--position",
        help="Index among the new siblings (last if omitted)",
    ),
    output: Optional[Path] = OutputOpt,
):
    """Move a question into another group."""
    session = _load(form)
    node = _node(session, node_ref)
    parent = _node(session, parent_ref) if parent_ref else None
    old = _describe(session, node)
    _edit(session.move, node, parent, position)
    console.print(f"Moved {old} → {_describe(session, node)}")
    _save(session, form, output)


@app.command()
def duplicate(
    form: Path = FormArg,
    node_ref: str = typer.Argument(..., help="Question id or path"),
    output: Optional[Path] = OutputOpt,
):
    """Copy a question (with its children) next to the original."""
    session = _load(form)
    node = _node(session, node_ref)
    copy = session.duplicate(node)
    console.print(f"Copied {_describe(session, node)} → {_describe(session, copy)}")
    _save(session, form, output)


@app.command()
def itext(
    form: Path = FormArg,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the XML to a file"),
):
    """Print the <itext> block for the form's translations."""
    session = _load(form)
    xml = session.itext_xml()
    if output:
        output.write_text(xml, encoding="utf-8")
        console.print(f"[green]✓[/] Wrote {output}")
    else:
        typer.echo(xml)


@app.command("export-translations")
def export_translations(
    form: Path = FormArg,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the TSV to a file"),
):
    """Export translations as tab-separated text for a spreadsheet."""
    session = _load(form)
    text = session.export_translations()
    if not text:
        console.print("[yellow]Form has no languages[/]")
        raise typer.Exit(1)
    if output:
        output.write_text(text, encoding="utf-8")
        console.print(f"[green]✓[/] Wrote {output}")
    else:
        typer.echo(text)


@app.command("import-translations")
def import_translations(
    form: Path = FormArg,
    tsv: Path = typer.Argument(..., help="Tab-separated translations"),
    output: Optional[Path] = OutputOpt,
):
    """Apply translations edited in a spreadsheet."""
    session = _load(form)
    if not tsv.exists():
        console.print(f"[red]Error:[/] File not found: {tsv}")
        raise typer.Exit(1)
    applied = session.import_translations(tsv.read_text(encoding="utf-8"))
    console.print(f"Applied {applied} rows")
    _save(session, form, output)


@app.command()
def validate(form: Path = FormArg):
    """Check translations and references; exit 1 on problems."""
    session = _load(form)
    problems = session.validate()
    warnings = list(session.diagnostics)

    if not problems and not warnings:
        console.print("[green]✓ No problems found[/]")
        return

    table = Table(title="Problems")
    table.add_column("Where", style="cyan", no_wrap=True)
    table.add_column("Level", style="yellow", no_wrap=True)
    table.add_column("Message")
    for where, messages in problems.items():
        for message in messages:
            table.add_row(where, "error", message)
    for diagnostic in warnings:
        for message in diagnostic.messages:
            table.add_row(diagnostic.key, diagnostic.level, message)
    console.print(table)
    if problems:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
