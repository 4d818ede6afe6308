"""Export convenience function."""

import logging
from pathlib import Path

from formcheck.core.database import SubmissionDatabase
from formcheck.exporters.answers_table import export_answers_csv, export_answers_excel

logger = logging.getLogger(__name__)


def export_all(
    db: SubmissionDatabase,
    output_dir: str | None = None,
    form_title: str | None = None,
) -> dict:
    """Run all exports and return dict of file paths created."""
    if output_dir is None:
        output_dir = str(Path(db.db_path).parent / "exports")

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    paths = {}

    answers_csv_path = str(out / "answers.csv")
    export_answers_csv(db, answers_csv_path, form_title)
    paths["answers_csv"] = answers_csv_path

    answers_xlsx_path = str(out / "answers.xlsx")
    export_answers_excel(db, answers_xlsx_path, form_title)
    paths["answers_xlsx"] = answers_xlsx_path

    logger.info("All exports written to %s", output_dir)
    return paths
