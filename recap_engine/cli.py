from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .config import CONFIGS_DIR, DATA_DIR, load_policy
from .errors import TaxNotFoundError
from .render import render_recap
from .session import RecapSession
from .store import JsonStore
from .utils import money


app = typer.Typer(help="Works recap sheet CLI", no_args_is_help=True)

_state = {"data": DATA_DIR, "configs": CONFIGS_DIR}


@app.callback()
def main(
    data: Path = typer.Option(DATA_DIR, help="Record store folder (one JSON file per table)"),
    configs: Path = typer.Option(CONFIGS_DIR, help="Configs folder (recap.yaml)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _state["data"] = data
    _state["configs"] = configs


def _open(work_id: str) -> RecapSession:
    session = RecapSession(work_id, JsonStore(_state["data"]), load_policy(_state["configs"]))
    if not session.load():
        typer.echo(f"Work not found or could not be loaded: {work_id}", err=True)
        raise typer.Exit(code=1)
    return session


def _save(session: RecapSession) -> None:
    if not session.save():
        typer.echo("Save failed; see log for details.", err=True)
        raise typer.Exit(code=1)
    typer.echo("Recap saved.")


@app.command()
def show(
    work_id: str = typer.Argument(..., help="Work id"),
    as_json: bool = typer.Option(False, "--json", help="Print the calculations as JSON"),
):
    """Print the recap totals for a work."""
    session = _open(work_id)
    calc = session.calculations
    if calc is None:
        typer.echo("Work has no subworks.")
        return
    if as_json:
        typer.echo(json.dumps(calc.model_dump(by_alias=True), indent=2))
        return

    names = {t.id: t.name for t in session.taxes}
    typer.echo(f"{session.work.name}")
    for label, part in (
        ("Part A", calc.part_a),
        ("Part B", calc.part_b),
        ("Part A+B", calc.part_ab_combined),
        ("Part C", calc.part_c),
    ):
        typer.echo(f"  {label:<9} subtotal {money(part.subtotal):>14}")
        for tax_id, value in part.taxes.items():
            typer.echo(f"    {names.get(tax_id, tax_id):<18} {money(value):>14}")
        typer.echo(f"  {label:<9} total    {money(part.total):>14}")
    typer.echo(f"  DPR charges        {money(calc.additional_charges.dpr_charges):>14}")
    typer.echo(f"  Grand total        {money(calc.grand_total):>14}")


@app.command()
def render(
    work_id: str = typer.Argument(..., help="Work id"),
    out: Optional[str] = typer.Option(None, help="Output HTML path"),
):
    """Render the recap sheet to HTML."""
    session = _open(work_id)
    if session.calculations is None:
        typer.echo("Work has no subworks.", err=True)
        raise typer.Exit(code=1)
    out_file = Path(out) if out else Path("out") / f"recap-{work_id}.html"
    render_recap(session.work, session.sheet_rows(), session.calculations, session.taxes, session.policy, out_path=out_file)
    typer.echo(f"Wrote {out_file}")


@app.command()
def save(work_id: str = typer.Argument(..., help="Work id")):
    """Recompute and store the recap snapshot on the work."""
    _save(_open(work_id))


@app.command("set-unit")
def set_unit(work_id: str, subwork_id: str, value: float):
    """Override the unit multiplier of one subwork, then save."""
    session = _open(work_id)
    if subwork_id not in {sw.id for sw in session.subworks}:
        typer.echo(f"Unknown subwork: {subwork_id}", err=True)
        raise typer.Exit(code=2)
    session.set_unit(subwork_id, value)
    _save(session)


@app.command("add-tax")
def add_tax(
    work_id: str,
    name: str = typer.Option("New Tax", help="Display name"),
    tax_type: str = typer.Option("percentage", "--type", help="percentage or fixed"),
    value: float = typer.Option(0.0, help="Percentage or fixed amount"),
    apply_to: str = typer.Option("both", help="part_a, part_b, part_c, part_a_b_combined or both"),
):
    """Add a tax entry, then save."""
    session = _open(work_id)
    fields = {"name": name, "type": tax_type, "apply_to": apply_to}
    if tax_type == "fixed":
        fields.update(percentage=None, fixed_amount=value)
    else:
        fields.update(percentage=value)
    try:
        tax = session.add_tax(**fields)
    except ValueError as e:
        typer.echo(f"Invalid tax: {e}", err=True)
        raise typer.Exit(code=2)
    typer.echo(f"Added tax {tax.id}")
    _save(session)


@app.command("remove-tax")
def remove_tax(work_id: str, tax_id: str):
    """Remove a tax entry, then save."""
    session = _open(work_id)
    if tax_id not in {t.id for t in session.taxes}:
        typer.echo(str(TaxNotFoundError(tax_id)), err=True)
        raise typer.Exit(code=2)
    session.remove_tax(tax_id)
    _save(session)


if __name__ == "__main__":  # pragma: no cover
    app()
