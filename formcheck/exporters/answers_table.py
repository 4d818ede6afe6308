"""Stored answer exports: CSV and Excel."""

import csv
import logging

import openpyxl

from formcheck.core.database import SubmissionDatabase

logger = logging.getLogger(__name__)

HEADERS = [
    "submission_id",
    "form_title",
    "submitted_at",
    "quiz_score",
    "field_id",
    "value",
    "findings",
    "sentiment_flag",
    "entity_flag",
    "not_evaluated",
    "quiz_correct",
]


# ── Helpers ──────────────────────────────────────────────────────────


def _build_answer_rows(db: SubmissionDatabase, form_title: str | None = None) -> list[list]:
    """One row per stored answer, oldest submission first."""
    rows = []
    for sub in db.get_submissions(form_title):
        for answer in db.get_answers(sub["id"]):
            rows.append([
                sub["id"],
                sub["form_title"],
                sub["submitted_at"],
                sub["quiz_score"],
                answer["field_id"],
                answer["value"],
                _describe_findings(answer["findings"]),
                answer["sentiment_flag"],
                answer["entity_flag"],
                answer["not_evaluated"],
                "" if answer["quiz_correct"] is None else answer["quiz_correct"],
            ])
    return rows


def _describe_findings(findings: list[dict]) -> str:
    return "; ".join(f"[{f['severity']}] {f['type']}: {f['issue']}" for f in findings)


# ── CSV Export ───────────────────────────────────────────────────────


def export_answers_csv(
    db: SubmissionDatabase, output_path: str, form_title: str | None = None
) -> None:
    """Export stored answers as CSV."""
    rows = _build_answer_rows(db, form_title)

    with open(output_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(HEADERS)
        writer.writerows(rows)

    logger.info("Answers CSV exported to %s (%d rows)", output_path, len(rows))


# ── Excel Export ─────────────────────────────────────────────────────


def export_answers_excel(
    db: SubmissionDatabase, output_path: str, form_title: str | None = None
) -> None:
    """Export stored answers as Excel with 3 sheets."""
    wb = openpyxl.Workbook()

    # Sheet 1: Answers
    ws1 = wb.active
    ws1.title = "Answers"
    ws1.append(HEADERS)
    for row in _build_answer_rows(db, form_title):
        ws1.append(row)
    _style_header(ws1)

    # Sheet 2: Validation Stats
    ws2 = wb.create_sheet("Validation Stats")
    ws2.append(["metric", "value"])
    for key, value in db.get_validation_stats(form_title).items():
        ws2.append([key, value])
    _style_header(ws2)

    # Sheet 3: Audit Log
    ws3 = wb.create_sheet("Audit Log")
    ws3.append(["id", "action", "entity_type", "entity_id", "metadata", "created_at"])
    for event in db.get_audit_log():
        ws3.append([
            event["id"],
            event["action"],
            event["entity_type"],
            event["entity_id"],
            str(event["metadata"]),
            event["created_at"],
        ])
    _style_header(ws3)

    wb.save(output_path)
    logger.info("Answers Excel exported to %s", output_path)


def _style_header(ws) -> None:
    """Bold the header row."""
    from openpyxl.styles import Font
    for cell in ws[1]:
        cell.font = Font(bold=True)
