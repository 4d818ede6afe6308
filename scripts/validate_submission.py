#!/usr/bin/env python3
"""Validate one submission against a form definition, optionally storing it."""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from formcheck.core.database import SubmissionDatabase
from formcheck.core.form_spec import load_form_spec
from formcheck.core.settings import EngineSettings
from formcheck.exporters import export_all
from formcheck.pipeline.aggregator import ValidationAggregator
from formcheck.pipeline.submission import submit_form

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("validate")

EXIT_REJECTED = 2


def run(
    form_path: str,
    values_path: str,
    name: str | None = None,
    export: bool = False,
) -> int:
    """Evaluate (and with a database name, submit) one set of values."""
    t_start = time.time()
    settings = EngineSettings()

    form = load_form_spec(form_path)
    logger.info("Form: %s (v%s, %d fields)", form.title, form.version, len(form.fields))

    with open(values_path) as f:
        values = json.load(f)

    aggregator = ValidationAggregator.from_settings(settings)

    if name is None:
        outcome = aggregator.evaluate(form.fields, values)
        print(outcome.model_dump_json(indent=2))
        accepted = outcome.accepted
    else:
        db = SubmissionDatabase(name, data_root=settings.data_root)
        logger.info("Database: %s", db.db_path)
        try:
            receipt = submit_form(db, form, values, aggregator)
            print(receipt.model_dump_json(indent=2))
            accepted = receipt.accepted
            if export:
                for kind, path in export_all(db, form_title=form.title).items():
                    logger.info("  %s: %s", kind, path)
        finally:
            db.close()

    logger.info(
        "Done in %.1fs, submission %s",
        time.time() - t_start, "accepted" if accepted else "rejected",
    )
    return 0 if accepted else EXIT_REJECTED


# ── CLI ──────────────────────────────────────────────────────────────


def main():
    parser = argparse.ArgumentParser(description="Validate a form submission")
    parser.add_argument("--form", required=True, help="Path to form definition YAML file")
    parser.add_argument("--values", required=True, help="Path to JSON object of field id → value")
    parser.add_argument(
        "--name",
        default=None,
        help="Database name; when given, accepted submissions are stored",
    )
    parser.add_argument(
        "--export",
        action="store_true",
        help="Export stored answers after submitting (requires --name)",
    )
    args = parser.parse_args()

    if args.export and not args.name:
        parser.error("--export requires --name")

    sys.exit(run(args.form, args.values, name=args.name, export=args.export))


if __name__ == "__main__":
    main()
