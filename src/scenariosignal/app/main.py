from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Sequence

from scenariosignal.app.config import Settings, build_store, load_settings
from scenariosignal.authoring.draft import lint_scenarios
from scenariosignal.authoring.export import export_scenarios, read_export, write_export
from scenariosignal.engine import (
    collect_conditions,
    evaluate,
    format_prediction,
    predict_markets,
)
from scenariosignal.errors import ScenarioError, ScenarioFormatError, ScenarioNotFoundError
from scenariosignal.observability import configure_logging, get_logger

logger = get_logger("scenariosignal")


def _load_json_value(value: str) -> Any:
    path = Path(value)
    try:
        text = path.read_text(encoding="utf-8") if os.path.isfile(value) else value
        return json.loads(text)
    except OSError as exc:
        raise ScenarioError(f"Unable to read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ScenarioFormatError(f"Invalid JSON for --values: {exc.msg}") from exc


def _emit(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if getattr(args, "data_dir", None):
        overrides["data_dir"] = args.data_dir
    if getattr(args, "primary_store", None):
        overrides["primary_store"] = args.primary_store
    if getattr(args, "sink_url", None):
        overrides["sink_url"] = args.sink_url
    if getattr(args, "bootstrap", None):
        overrides["bootstrap_source"] = args.bootstrap
    config_path = Path(args.config) if getattr(args, "config", None) else None
    return load_settings(overrides, config_path=config_path)


def _store_from_args(args: argparse.Namespace):
    return build_store(args.settings)


def _run_list(args: argparse.Namespace) -> None:
    scenarios = asyncio.run(_store_from_args(args).load_scenarios())
    _emit({scenario_id: scenario.name for scenario_id, scenario in scenarios.items()})


def _run_show(args: argparse.Namespace) -> None:
    scenarios = asyncio.run(_store_from_args(args).load_scenarios())
    scenario = scenarios.get(args.scenario_id)
    if scenario is None:
        raise ScenarioNotFoundError("scenario", args.scenario_id)
    _emit({"id": scenario.id, **scenario.to_dict()})


def _run_evaluate(args: argparse.Namespace) -> None:
    scenarios = asyncio.run(_store_from_args(args).load_scenarios())
    raw_values = _load_json_value(args.values) if args.values else {}
    scenario = scenarios.get(args.scenario_id)
    if scenario is None:
        raise ScenarioNotFoundError("scenario", args.scenario_id)
    result = evaluate(scenario, collect_conditions(scenario, raw_values))
    _emit(result.to_dict())
    if result.is_error:
        raise SystemExit(1)


def _run_predict(args: argparse.Namespace) -> None:
    store = _store_from_args(args)

    async def _gather():
        return await store.load_scenarios(), await store.get_market_assignments()

    scenarios, assignments = asyncio.run(_gather())
    raw_values = _load_json_value(args.values) if args.values else {}
    predictions = predict_markets(scenarios, assignments, args.settings.markets, raw_values)
    _emit(
        [
            {**prediction.to_dict(), "text": format_prediction(prediction)}
            for prediction in predictions
        ]
    )


def _run_assignments(args: argparse.Namespace) -> None:
    _emit(asyncio.run(_store_from_args(args).get_market_assignments()))


def _run_assign(args: argparse.Namespace) -> None:
    store = _store_from_args(args)
    scenarios = asyncio.run(store.load_scenarios())
    if args.scenario_id not in scenarios:
        raise ScenarioNotFoundError("scenario", args.scenario_id)
    _emit(asyncio.run(store.assign_scenario_to_market(args.market, args.scenario_id)))


def _run_unassign(args: argparse.Namespace) -> None:
    _emit(asyncio.run(_store_from_args(args).unassign_scenario_from_market(args.market)))


def _run_export(args: argparse.Namespace) -> None:
    scenarios = asyncio.run(_store_from_args(args).load_scenarios())
    if args.output:
        path = write_export(Path(args.output), scenarios)
        logger.info(f"Exported {len(scenarios)} scenarios to {path}")
        return
    sys.stdout.write(export_scenarios(scenarios) + "\n")


def _run_import(args: argparse.Namespace) -> None:
    try:
        scenarios = read_export(Path(args.path))
    except OSError as exc:
        raise ScenarioError(f"Unable to read {args.path}: {exc}") from exc
    issues = lint_scenarios(scenarios)
    if issues and args.strict:
        raise ScenarioError("; ".join(issues))
    asyncio.run(_store_from_args(args).save_scenarios(scenarios))
    _emit({"imported": sorted(scenarios), "issues": issues})


def _run_lint(args: argparse.Namespace) -> None:
    scenarios = asyncio.run(_store_from_args(args).load_scenarios())
    issues = lint_scenarios(scenarios)
    _emit({"issues": issues})
    if issues:
        raise SystemExit(1)


def _add_settings_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None, help="Path to a settings file.")
    parser.add_argument("--data-dir", default=None)
    parser.add_argument(
        "--primary-store", default=None, choices=["local", "gcs", "postgres", "none"]
    )
    parser.add_argument("--sink-url", default=None)
    parser.add_argument("--bootstrap", default=None, help="package:<name>, URL or file path.")


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="scenariosignal")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List scenario ids and names.")
    _add_settings_args(list_parser)
    list_parser.set_defaults(handler=_run_list)

    show_parser = subparsers.add_parser("show", help="Print one scenario definition.")
    show_parser.add_argument("scenario_id")
    _add_settings_args(show_parser)
    show_parser.set_defaults(handler=_run_show)

    evaluate_parser = subparsers.add_parser("evaluate", help="Evaluate a scenario.")
    evaluate_parser.add_argument("scenario_id")
    evaluate_parser.add_argument(
        "--values", default=None, help="JSON string or path: condition key -> raw value."
    )
    _add_settings_args(evaluate_parser)
    evaluate_parser.set_defaults(handler=_run_evaluate)

    predict_parser = subparsers.add_parser("predict", help="Evaluate every configured market.")
    predict_parser.add_argument(
        "--values", default=None, help="JSON string or path: market -> condition key -> raw value."
    )
    _add_settings_args(predict_parser)
    predict_parser.set_defaults(handler=_run_predict)

    assignments_parser = subparsers.add_parser("assignments")
    _add_settings_args(assignments_parser)
    assignments_parser.set_defaults(handler=_run_assignments)

    assign_parser = subparsers.add_parser("assign")
    assign_parser.add_argument("market")
    assign_parser.add_argument("scenario_id")
    _add_settings_args(assign_parser)
    assign_parser.set_defaults(handler=_run_assign)

    unassign_parser = subparsers.add_parser("unassign")
    unassign_parser.add_argument("market")
    _add_settings_args(unassign_parser)
    unassign_parser.set_defaults(handler=_run_unassign)

    export_parser = subparsers.add_parser("export")
    export_parser.add_argument("--output", default=None)
    _add_settings_args(export_parser)
    export_parser.set_defaults(handler=_run_export)

    import_parser = subparsers.add_parser("import")
    import_parser.add_argument("path")
    import_parser.add_argument("--strict", action="store_true", help="Refuse files with lint issues.")
    _add_settings_args(import_parser)
    import_parser.set_defaults(handler=_run_import)

    lint_parser = subparsers.add_parser("lint")
    _add_settings_args(lint_parser)
    lint_parser.set_defaults(handler=_run_lint)

    args = parser.parse_args(argv)
    args.settings = _settings_from_args(args)
    configure_logging(args.settings.log_level, json_format=args.settings.log_json)
    try:
        args.handler(args)
    except ScenarioError as exc:
        sys.stderr.write(f"error: {exc}\n")
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
