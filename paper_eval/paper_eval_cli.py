"""paper-eval CLI entrypoint."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv

from .aggregation import CrossPaperAggregationService
from .config_loader import load_config, load_evaluation_config
from .config_schema import ConfigError, EvaluationConfig, validate_evaluation_config
from .logging_utils import setup_logging
from .metrics import FieldEvaluationProcessor, FieldPair

logger = logging.getLogger(__name__)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=False, ensure_ascii=False))


def _evaluation_config(args: argparse.Namespace) -> EvaluationConfig:
    """Explicit config paths must exist; the default one may be missing."""
    if args.config:
        config = load_evaluation_config(args.config)
    else:
        try:
            config = load_evaluation_config()
        except FileNotFoundError:
            logger.debug("No default configuration found, using built-in defaults")
            config = EvaluationConfig.default()

    logging_setup = getattr(args, "logging_setup", None)
    if logging_setup is not None:
        logging_setup.config = config
        logging_setup.log_config()
    return config


def _parse_value(raw: str, as_json: bool) -> Any:
    if not as_json:
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _cmd_score(args: argparse.Namespace) -> int:
    config = _evaluation_config(args)
    processor = FieldEvaluationProcessor.from_config(config, args.domain)

    field_type = args.type or config.domain(args.domain).field_type(args.field)
    pair = FieldPair(
        _parse_value(args.reference, args.json_values),
        _parse_value(args.extracted, args.json_values),
        field_type,
    )
    field_score = processor.evaluate(pair, args.field, rating=args.rating)
    _print_json(field_score.to_dict())
    return 0


def _load_records(path: Path) -> List[Any]:
    if path.is_dir():
        records = []
        for file_path in sorted(path.glob("*.json")):
            try:
                with file_path.open("r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable evaluation file {file_path}: {e}")
                continue
            records.extend(data if isinstance(data, list) else [data])
        return records

    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    return data if isinstance(data, list) else [data]


def _cmd_aggregate(args: argparse.Namespace) -> int:
    path = Path(args.path)
    if not path.exists():
        print(f"Path not found: {path}", file=sys.stderr)
        return 1

    config = _evaluation_config(args)
    try:
        records = _load_records(path)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Could not read evaluations from {path}: {e}", file=sys.stderr)
        return 1

    service = CrossPaperAggregationService(config.aggregation)
    report = service.analyze_records(records).to_dict()

    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        with output.open("w", encoding="utf-8") as f:
            json.dump(report, f, indent=2, ensure_ascii=False)
        logger.info(f"Report written to {output}")
    else:
        _print_json(report)
    return 0


def _cmd_validate_config(args: argparse.Namespace) -> int:
    try:
        raw = load_config(args.config)
    except FileNotFoundError as e:
        print(str(e), file=sys.stderr)
        return 1

    errors = validate_evaluation_config(raw)
    if args.json:
        _print_json({"valid": not errors, "errors": errors})
    elif errors:
        print("Configuration is invalid:")
        for error in errors:
            print(f"  - {error}")
    else:
        print("Configuration is valid")
    return 1 if errors else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="paper-eval",
        description="paper-eval - scoring and aggregation of paper extraction evaluations",
    )
    parser.add_argument("--log-level", default="WARNING", help="Console log level (default: WARNING)")
    parser.add_argument("--log-dir", default=None, help="Also write a DEBUG log file to this directory")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # score
    score_parser = subparsers.add_parser(
        "score",
        help="Score one extracted value against its reference",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  paper-eval score --reference 'Graph Neural Networks' --extracted 'Graph Neural Network'\n"
            "  paper-eval score --domain metadata --field doi --reference 10.1000/xyz --extracted 10.1000/xyz --rating 4\n"
            "  paper-eval score --type list --json-values --reference '[\"A. Smith\", \"B. Jones\"]' --extracted '[\"A. Smith\"]'\n"
        ),
    )
    score_parser.add_argument("--reference", required=True, help="Reference value")
    score_parser.add_argument("--extracted", required=True, help="Extracted value")
    score_parser.add_argument("--type", default=None, help="Field type (defaults to the configured type)")
    score_parser.add_argument("--rating", type=float, default=0, help="Evaluator rating 0-5 (0 = unrated)")
    score_parser.add_argument("--domain", default="metadata", help="Domain (default: metadata)")
    score_parser.add_argument("--field", default="value", help="Field name (default: value)")
    score_parser.add_argument("--json-values", action="store_true", help="Parse values as JSON")
    score_parser.add_argument("--config", default=None, help="Evaluation config YAML")
    score_parser.set_defaults(_handler=_cmd_score)

    # aggregate
    aggregate_parser = subparsers.add_parser(
        "aggregate",
        help="Cross-paper report from archived evaluations (directory of *.json or one JSON file)",
    )
    aggregate_parser.add_argument("path", help="Evaluation directory or JSON file")
    aggregate_parser.add_argument("--output", "-o", default=None, help="Write the report to this file")
    aggregate_parser.add_argument("--config", default=None, help="Evaluation config YAML")
    aggregate_parser.set_defaults(_handler=_cmd_aggregate)

    # validate-config
    validate_parser = subparsers.add_parser("validate-config", help="Validate an evaluation config")
    validate_parser.add_argument("--config", default=None, help="Evaluation config YAML")
    validate_parser.add_argument("--json", action="store_true", help="Output as JSON")
    validate_parser.set_defaults(_handler=_cmd_validate_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    args.logging_setup = setup_logging(log_dir=args.log_dir, console_level=args.log_level)
    log_file = args.logging_setup.get_log_filepath()
    if log_file is not None:
        logger.info(f"Debug log: {log_file}")
    handler = getattr(args, "_handler", None)
    if handler is None:
        parser.error("No command handler registered")
    try:
        return int(handler(args) or 0)
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
