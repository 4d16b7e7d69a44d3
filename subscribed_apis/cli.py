"""subscribed-apis: list every application with the APIs it is subscribed to.

Run examples:
  subscribed-apis
  subscribed-apis --engine mongosh --format json --save
  subscribed-apis --engine json --data-dir ./dumps/third-party-application
  subscribed-apis --check ./dumps/third-party-application
  subscribed-apis --show-pipeline
"""

import argparse
import json
import sys
import time
from contextlib import contextmanager, redirect_stderr, redirect_stdout
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from bson import json_util
from pymongo.errors import PyMongoError
from tabulate import tabulate
from tqdm import tqdm

from .compare import compare_reports
from .config import ReportConfig
from .dumps import DumpFormatError, load_collection
from .join import join_documents
from .models import ApplicationApis
from .mongosh_exec import ShellQueryError
from .pipeline import build_pipeline, get_pipeline_stages, pipeline_to_mql
from .runner import ENGINES, run_report

REPORT_ERRORS = (PyMongoError, ShellQueryError, DumpFormatError, OSError, ValueError)


@contextmanager
def timer(name: str):
    t0 = time.time()
    yield
    print(f"{name} took {time.time() - t0:.2f} seconds")


def render_table(rows: List[ApplicationApis]) -> str:
    table = [[row.id, row.name, ", ".join(str(api) for api in row.apis)] for row in rows]
    return tabulate(table, headers=["id", "name", "apis"], tablefmt="grid")


def render_json(rows: List[ApplicationApis]) -> str:
    return json_util.dumps([row.to_document() for row in rows], ensure_ascii=False, indent=2)


def save_report(rows: List[ApplicationApis], output_dir: Path, filename: Optional[str] = None) -> Path:
    if not filename:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"subscribed_apis_{timestamp}.json"
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / filename
    with path.open("w", encoding="utf-8") as f:
        f.write(render_json(rows))
    return path


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="subscribed-apis",
                                 description="List every application with the APIs it is subscribed to.")
    ap.add_argument("--engine", choices=ENGINES, default="pymongo",
                    help="How to run the query (default: pymongo).")
    ap.add_argument("--uri", dest="mongodb_uri", default=None,
                    help="MongoDB connection string (default: $MONGODB_URI or mongodb://localhost:27017/).")
    ap.add_argument("--db", dest="db_name", default=None,
                    help="Database name (default: $REPORT_DB_NAME or third-party-application).")
    ap.add_argument("--data-dir", default=None,
                    help="Directory of <collection>.json dumps, used by the json engine.")
    ap.add_argument("--format", dest="fmt", choices=["table", "json"], default="table",
                    help="Output format (default: table).")
    ap.add_argument("--save", nargs="?", const="", default=None, metavar="FILE",
                    help="Also write the JSON result into the output directory.")
    ap.add_argument("--output-dir", default=None,
                    help="Where --save writes (default: ./query_results).")
    ap.add_argument("--timeout", type=int, default=None,
                    help="Server selection / shell timeout in seconds (default: 30).")
    ap.add_argument("--log-file", default=None,
                    help="Redirect all console output to this file.")
    ap.add_argument("--check", dest="check_dir", default=None, metavar="DATA_DIR",
                    help="Compare the engine's result with the in-memory join over DATA_DIR.")
    ap.add_argument("--show-pipeline", action="store_true",
                    help="Print the aggregation as mongosh text and exit.")
    return ap


def _check_against_dumps(rows: List[ApplicationApis], config: ReportConfig, check_dir: str) -> int:
    expected = list(join_documents(load_collection(check_dir, config.application_collection),
                                   load_collection(check_dir, config.subscription_collection)))
    differing = compare_reports(rows, expected)
    if differing:
        print(f"Mismatch for {len(differing)} application(s): {', '.join(str(i) for i in differing)}")
        return 1
    print(f"All {len(expected)} application rows match {check_dir}")
    return 0


def run(args: argparse.Namespace) -> int:
    config = ReportConfig.from_env(mongodb_uri=args.mongodb_uri, db_name=args.db_name,
                                   timeout=args.timeout,
                                   output_dir=Path(args.output_dir) if args.output_dir else None)

    if args.show_pipeline:
        pipeline = build_pipeline(config.subscription_collection)
        print(f"use({json.dumps(config.db_name)});")
        print(pipeline_to_mql(config.application_collection, pipeline))
        print(f"Stages: {get_pipeline_stages(pipeline)}")
        return 0

    try:
        with timer(f"Query on '{config.db_name}' ({args.engine})"):
            rows = list(tqdm(run_report(args.engine, config, data_dir=args.data_dir),
                             desc="Reading results", unit="app", disable=None))
    except REPORT_ERRORS as e:
        print(f"Query failed: {e}", file=sys.stderr)
        return 1

    print(render_table(rows) if args.fmt == "table" else render_json(rows))
    print(f"\n{len(rows)} application(s)")

    if args.save is not None:
        path = save_report(rows, config.output_dir, args.save or None)
        print(f"Results saved to: {path}")

    if args.check_dir:
        try:
            return _check_against_dumps(rows, config, args.check_dir)
        except REPORT_ERRORS as e:
            print(f"Check failed: {e}", file=sys.stderr)
            return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if not args.log_file:
        return run(args)

    log_path = Path(args.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with open(log_path, "w", encoding="utf-8") as log_file:
        with redirect_stdout(log_file), redirect_stderr(log_file):
            status = run(args)
    print(f"Log saved to {log_path}")
    return status
