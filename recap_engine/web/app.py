from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from fastapi import FastAPI, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from starlette.templating import Jinja2Templates

from ..config import DATA_DIR, load_policy
from ..errors import TaxNotFoundError
from ..render import render_recap
from ..session import RecapSession
from ..store import JsonStore
from ..utils import to_number


logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
APPLY_TO_CHOICES = ["part_a", "part_b", "part_c", "part_a_b_combined", "both"]

app = FastAPI(title="Works Recap Sheet")
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

app.state.store = JsonStore(DATA_DIR)
app.state.policy = load_policy()
# Unsaved edits live here per work id until saved or reloaded
app.state.sessions = {}


def _sessions() -> Dict[str, RecapSession]:
    return app.state.sessions


def _get_session(work_id: str) -> Optional[RecapSession]:
    session = _sessions().get(work_id)
    if session is not None:
        return session
    session = RecapSession(work_id, app.state.store, app.state.policy)
    if not session.load():
        return None
    _sessions()[work_id] = session
    return session


def _not_found(work_id: str) -> HTMLResponse:
    return HTMLResponse(f"Work not found: {work_id}", status_code=404)


def _back(work_id: str, **params: str) -> RedirectResponse:
    url = f"/works/{work_id}/recap"
    if params:
        url += "?" + "&".join(f"{k}={v}" for k, v in params.items())
    return RedirectResponse(url=url, status_code=303)


@app.get("/works/{work_id}/recap", response_class=HTMLResponse)
def recap_page(request: Request, work_id: str):
    session = _get_session(work_id)
    if session is None:
        return _not_found(work_id)
    sheet = ""
    if session.calculations is not None:
        sheet = render_recap(session.work, session.sheet_rows(), session.calculations, session.taxes, session.policy, fragment=True)
    return templates.TemplateResponse(
        request,
        "recap.html",
        {
            "session": session,
            "sheet": sheet,
            "apply_to_choices": APPLY_TO_CHOICES,
            "saved": request.query_params.get("saved") == "1",
            "error": request.query_params.get("error"),
        },
    )


@app.get("/works/{work_id}/recap.json")
def recap_json(work_id: str):
    session = _get_session(work_id)
    if session is None:
        return JSONResponse({"error": "not_found", "work_id": work_id}, status_code=404)
    calc = session.calculations
    return {
        "workId": work_id,
        "calculations": calc.model_dump(by_alias=True) if calc is not None else None,
        "totalEstimatedCost": calc.total_estimated_cost if calc is not None else None,
        "taxes": [t.model_dump(by_alias=True) for t in session.taxes],
        "unitInputs": dict(session.unit_inputs),
        "dirty": session.dirty,
    }


@app.post("/works/{work_id}/recap/unit")
async def update_unit(work_id: str, subwork_id: str = Form(...), value: str = Form("")):
    session = _get_session(work_id)
    if session is None:
        return _not_found(work_id)
    if subwork_id not in {sw.id for sw in session.subworks}:
        return HTMLResponse(f"Unknown subwork: {subwork_id}", status_code=404)
    session.set_unit(subwork_id, value)
    return _back(work_id)


@app.post("/works/{work_id}/recap/taxes")
async def create_tax(
    work_id: str,
    name: str = Form("New Tax"),
    type: str = Form("percentage"),
    value: str = Form("0"),
    apply_to: str = Form("both"),
):
    session = _get_session(work_id)
    if session is None:
        return _not_found(work_id)
    amount = to_number(value)
    fields = {"name": name, "type": type, "apply_to": apply_to}
    if type == "fixed":
        fields.update(fixed_amount=amount, percentage=None)
    else:
        fields.update(percentage=amount)
    try:
        session.add_tax(**fields)
    except ValueError:
        logger.warning("Rejected tax entry for work %s", work_id, exc_info=True)
        return _back(work_id, error="invalid-tax")
    return _back(work_id)


@app.post("/works/{work_id}/recap/taxes/{tax_id}")
async def edit_tax(
    work_id: str,
    tax_id: str,
    name: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    value: Optional[str] = Form(None),
    apply_to: Optional[str] = Form(None),
):
    session = _get_session(work_id)
    if session is None:
        return _not_found(work_id)
    try:
        current = next((t for t in session.taxes if t.id == tax_id), None)
        if current is None:
            raise TaxNotFoundError(tax_id)
        if type and type != current.type:
            session.set_tax_type(tax_id, type)
            current = next(t for t in session.taxes if t.id == tax_id)
        fields = {}
        if name is not None:
            fields["name"] = name
        if apply_to:
            fields["apply_to"] = apply_to
        if value is not None:
            key = "fixed_amount" if current.type == "fixed" else "percentage"
            fields[key] = to_number(value)
        if fields:
            session.update_tax(tax_id, **fields)
    except TaxNotFoundError:
        return HTMLResponse(f"Tax not found: {tax_id}", status_code=404)
    except ValueError:
        logger.warning("Rejected tax update %s for work %s", tax_id, work_id, exc_info=True)
        return _back(work_id, error="invalid-tax")
    return _back(work_id)


@app.post("/works/{work_id}/recap/taxes/{tax_id}/delete")
async def delete_tax(work_id: str, tax_id: str):
    session = _get_session(work_id)
    if session is None:
        return _not_found(work_id)
    session.remove_tax(tax_id)
    return _back(work_id)


@app.post("/works/{work_id}/recap/save")
async def save_recap(work_id: str):
    session = _get_session(work_id)
    if session is None:
        return _not_found(work_id)
    if not session.save():
        return HTMLResponse("Failed to save recap; edits are kept, try again.", status_code=500)
    return _back(work_id, saved="1")


@app.post("/works/{work_id}/recap/reload")
async def reload_recap(work_id: str):
    _sessions().pop(work_id, None)
    if _get_session(work_id) is None:
        return _not_found(work_id)
    return _back(work_id)
