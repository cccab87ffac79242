import json
import logging
from pathlib import Path
from typing import Optional

import typer

from babonus.engine.engine import hit_die_check, item_check, throw_check
from babonus.engine.errors import ContentError
from babonus.engine.expr import expr_cache_info
from babonus.engine.loader import load_candidates, load_subject
from babonus.engine.models import Actor, Item
from babonus.engine.settings import load_settings
from babonus.engine.sources import StaticBonusSource, UserTargets
from babonus.engine.trace import TraceSession
from babonus.tools.export_schemas import export_schemas
from babonus.tools.validate import validate_cmd

app = typer.Typer(add_completion=False, help="Evaluate and validate conditional roll bonuses.")
app.command("validate")(validate_cmd)

@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level")):
    settings = load_settings()
    logging.basicConfig(level="DEBUG" if verbose else settings.log_level,
                        format="%(levelname)s [%(name)s] %(message)s")

@app.command()
def check(
    bonuses: Path = typer.Argument(..., help="Bonus definition file or directory"),
    subject: Path = typer.Argument(..., help="Actor or item file"),
    item_id: Optional[str] = typer.Option(None, "--item", help="Item of the actor making the roll"),
    hook: str = typer.Option("attack", "--hook", help="attack | damage | save (item rolls)"),
    throw: Optional[str] = typer.Option(None, "--throw", help="Saving throw ability, or 'death'"),
    conc: bool = typer.Option(False, "--conc", help="The saving throw keeps concentration"),
    hitdie: bool = typer.Option(False, "--hitdie", help="Evaluate hit die bonuses"),
    target: Optional[Path] = typer.Option(None, "--target", help="Actor file for the current target"),
    trace: bool = typer.Option(False, "--trace", help="Print the filter trace"),
):
    """Print the bonuses that apply to one roll."""
    try:
        source = StaticBonusSource(load_candidates(bonuses))
        subj = load_subject(subject)
        tgt = load_subject(target) if target else None
    except ContentError as e:
        typer.echo(f"[ERROR] {e}", err=True)
        raise typer.Exit(code=1)
    if tgt is not None and not isinstance(tgt, Actor):
        typer.echo("[ERROR] --target must be an actor", err=True)
        raise typer.Exit(code=1)

    targets = UserTargets([tgt] if tgt else [])
    session = TraceSession() if (trace or load_settings().trace_filters) else None

    if hitdie or throw:
        if not isinstance(subj, Actor):
            typer.echo("[ERROR] hit die and saving throw checks need an actor", err=True)
            raise typer.Exit(code=1)
        if hitdie:
            payloads = hit_die_check(subj, source, targets, trace=session)
        else:
            payloads = throw_check(subj, throw, source, is_conc_save=conc, targets=targets, trace=session)
    else:
        item: Optional[Item] = subj if isinstance(subj, Item) else None
        if isinstance(subj, Actor):
            item = subj.get_item(item_id) if item_id else None
            if item is None:
                typer.echo(f"[ERROR] actor {subj.id} has no item {item_id!r}; pass --item", err=True)
                raise typer.Exit(code=1)
        try:
            payloads = item_check(item, hook, source, targets, trace=session)
        except ValueError as e:
            typer.echo(f"[ERROR] {e}", err=True)
            raise typer.Exit(code=1)

    if session is not None:
        for line in session.dump():
            typer.echo(line)
        typer.echo(expr_cache_info())
    for p in payloads:
        typer.echo(json.dumps(p.model_dump(by_alias=True, exclude_none=True)))
    if not payloads:
        typer.echo("No bonuses apply.")

@app.command()
def schemas(out_dir: Path = typer.Argument(Path("docs/schemas"))):
    """Export JSON schemas for bonus definitions."""
    for fp in export_schemas(out_dir):
        typer.echo(f"Wrote {fp}")

if __name__ == "__main__":
    app()
