from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field

from scenariosignal.app.config import Settings, build_store, load_settings
from scenariosignal.authoring.draft import lint_scenarios
from scenariosignal.authoring.export import export_scenarios
from scenariosignal.engine import collect_conditions, evaluate, format_prediction, predict_markets
from scenariosignal.engine.evaluate import REASON_NOT_FOUND
from scenariosignal.errors import ScenarioFormatError, StorageError
from scenariosignal.models import coerce_collected, scenarios_from_payload, scenarios_to_payload
from scenariosignal.observability import get_logger
from scenariosignal.storage.scenario_store import ScenarioStore
from scenariosignal.storage.sink import FileScenarioSink

logger = get_logger(__name__)

app = FastAPI(title="scenariosignal API")


class ScenariosDocument(BaseModel):
    scenarios: dict[str, dict[str, Any]]
    version: str | None = None


class EvaluateRequest(BaseModel):
    values: dict[str, Any] | None = None
    collected: dict[str, dict[str, Any]] | None = None


class PredictRequest(BaseModel):
    values: dict[str, dict[str, Any]] = Field(default_factory=dict)
    markets: list[str] | None = None


class AssignmentsDocument(BaseModel):
    assignments: dict[str, str]


class AssignRequest(BaseModel):
    scenario_id: str


class SaveResponse(BaseModel):
    saved: int
    issues: list[str] = Field(default_factory=list)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def get_store(settings: Settings = Depends(get_settings)) -> ScenarioStore:
    return build_store(settings)


def _parse_document(document: ScenariosDocument):
    try:
        return scenarios_from_payload({"scenarios": document.scenarios})
    except ScenarioFormatError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.get("/scenarios")
async def scenarios_get(store: ScenarioStore = Depends(get_store)) -> dict[str, Any]:
    scenarios = await store.load_scenarios()
    return {"scenarios": scenarios_to_payload(scenarios)}


@app.put("/scenarios", response_model=SaveResponse)
async def scenarios_put(
    document: ScenariosDocument,
    strict: bool = False,
    store: ScenarioStore = Depends(get_store),
) -> SaveResponse:
    scenarios = _parse_document(document)
    issues = lint_scenarios(scenarios)
    if strict and issues:
        raise HTTPException(status_code=422, detail=issues)
    try:
        await store.save_scenarios(scenarios)
    except StorageError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return SaveResponse(saved=len(scenarios), issues=issues)


@app.get("/scenarios/{scenario_id}")
async def scenario_get(
    scenario_id: str, store: ScenarioStore = Depends(get_store)
) -> dict[str, Any]:
    scenarios = await store.load_scenarios()
    scenario = scenarios.get(scenario_id)
    if scenario is None:
        raise HTTPException(status_code=404, detail="Scenario not found.")
    return {"id": scenario.id, **scenario.to_dict()}


@app.post("/scenarios/{scenario_id}/evaluate")
async def scenario_evaluate(
    scenario_id: str,
    request: EvaluateRequest,
    store: ScenarioStore = Depends(get_store),
) -> dict[str, Any]:
    scenarios = await store.load_scenarios()
    scenario = scenarios.get(scenario_id)
    if scenario is not None and request.collected is not None:
        collected = coerce_collected(request.collected)
    elif scenario is not None:
        collected = collect_conditions(scenario, request.values)
    else:
        collected = {}
    result = evaluate(scenario, collected)
    if result.reason == REASON_NOT_FOUND:
        raise HTTPException(status_code=404, detail=result.to_dict())
    return result.to_dict()


@app.post("/predict")
async def predict(
    request: PredictRequest,
    store: ScenarioStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> list[dict[str, Any]]:
    scenarios = await store.load_scenarios()
    assignments = await store.get_market_assignments()
    markets = request.markets or list(settings.markets)
    predictions = predict_markets(scenarios, assignments, markets, request.values)
    return [
        {**prediction.to_dict(), "text": format_prediction(prediction)}
        for prediction in predictions
    ]


@app.get("/assignments")
async def assignments_get(store: ScenarioStore = Depends(get_store)) -> dict[str, str]:
    return await store.get_market_assignments()


@app.put("/assignments")
async def assignments_put(
    document: AssignmentsDocument, store: ScenarioStore = Depends(get_store)
) -> dict[str, str]:
    try:
        await store.save_market_assignments(document.assignments)
    except StorageError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return document.assignments


@app.put("/assignments/{market}")
async def assignment_put(
    market: str, request: AssignRequest, store: ScenarioStore = Depends(get_store)
) -> dict[str, str]:
    try:
        return await store.assign_scenario_to_market(market, request.scenario_id)
    except (StorageError, ScenarioFormatError) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.delete("/assignments/{market}")
async def assignment_delete(
    market: str, store: ScenarioStore = Depends(get_store)
) -> dict[str, str]:
    try:
        return await store.unassign_scenario_from_market(market)
    except (StorageError, ScenarioFormatError) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.get("/export")
async def export(store: ScenarioStore = Depends(get_store)) -> Response:
    scenarios = await store.load_scenarios()
    return Response(
        content=export_scenarios(scenarios),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="scenarios.json"'},
    )


@app.post("/scenarios.json")
async def scenarios_sink(
    document: ScenariosDocument, settings: Settings = Depends(get_settings)
) -> dict[str, Any]:
    """Receiving end of the remote sink: keeps the posted document as a file."""
    scenarios = _parse_document(document)
    sink = FileScenarioSink(path=settings.resolved_data_dir() / "scenarios.json")
    try:
        sink.send({"scenarios": scenarios_to_payload(scenarios)})
    except StorageError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    logger.info(f"Stored {len(scenarios)} scenarios posted to the sink endpoint.")
    return {"saved": len(scenarios)}
