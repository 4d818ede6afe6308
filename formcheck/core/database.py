"""SQLite store for accepted submissions, their answers, and the audit trail."""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from formcheck.pipeline.models import AnswerRecord

logger = logging.getLogger(__name__)

DATA_ROOT = Path("data")

# ── Schema DDL ───────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS submissions (
    id                  INTEGER PRIMARY KEY,
    form_title          TEXT NOT NULL,
    form_version        TEXT NOT NULL,
    definition_hash     TEXT NOT NULL,
    submitted_by        TEXT,
    quiz_score          INTEGER,
    submitted_at        TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_submissions_form ON submissions(form_title);

CREATE TABLE IF NOT EXISTS submission_answers (
    id                  INTEGER PRIMARY KEY,
    submission_id       INTEGER NOT NULL REFERENCES submissions(id) ON DELETE CASCADE,
    field_id            TEXT NOT NULL,
    value               TEXT NOT NULL,
    findings            TEXT NOT NULL DEFAULT '[]',  -- JSON array of findings
    sentiment_flag      INTEGER NOT NULL DEFAULT 0,
    entity_flag         INTEGER NOT NULL DEFAULT 0,
    not_evaluated       INTEGER NOT NULL DEFAULT 0,
    quiz_correct        INTEGER          -- NULL for non-quiz fields
);

CREATE INDEX IF NOT EXISTS idx_answers_submission ON submission_answers(submission_id);

CREATE TABLE IF NOT EXISTS audit_log (
    id                  INTEGER PRIMARY KEY,
    action              TEXT NOT NULL,
    entity_type         TEXT,
    entity_id           TEXT,
    metadata            TEXT NOT NULL DEFAULT '{}',  -- JSON object
    created_at          TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_audit_action ON audit_log(action);
"""


# ── SubmissionDatabase ───────────────────────────────────────────────


class SubmissionDatabase:
    """SQLite store for one deployment's submissions."""

    def __init__(self, name: str, data_root: Path | None = None):
        root = (data_root or DATA_ROOT) / name
        root.mkdir(parents=True, exist_ok=True)
        (root / "exports").mkdir(exist_ok=True)

        self.db_path = root / "submissions.db"
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    # ── Submissions ──────────────────────────────────────────

    def add_submission(
        self,
        form_title: str,
        form_version: str,
        definition_hash: str,
        answers: list[AnswerRecord],
        quiz_score: int | None = None,
        submitted_by: str | None = None,
    ) -> int:
        """Store a submission with all its answers atomically. Returns the submission id."""
        with self._conn:
            cur = self._conn.execute(
                """INSERT INTO submissions
                   (form_title, form_version, definition_hash,
                    submitted_by, quiz_score, submitted_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (form_title, form_version, definition_hash, submitted_by, quiz_score, _now()),
            )
            submission_id = cur.lastrowid
            self._conn.executemany(
                """INSERT INTO submission_answers
                   (submission_id, field_id, value, findings,
                    sentiment_flag, entity_flag, not_evaluated, quiz_correct)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    (
                        submission_id,
                        a.field_id,
                        a.value,
                        a.findings_json(),
                        int(a.sentiment_flag),
                        int(a.entity_flag),
                        int(a.not_evaluated),
                        None if a.quiz_correct is None else int(a.quiz_correct),
                    )
                    for a in answers
                ],
            )

        logger.info(
            "Stored submission %d for '%s' (%d answers)",
            submission_id, form_title, len(answers),
        )
        return submission_id

    def get_submission(self, submission_id: int) -> dict:
        row = self._conn.execute(
            "SELECT * FROM submissions WHERE id = ?", (submission_id,)
        ).fetchone()
        if row is None:
            raise ValueError(f"Submission {submission_id} not found")
        return dict(row)

    def get_answers(self, submission_id: int) -> list[dict]:
        """Answer rows with findings decoded and flags as booleans."""
        self.get_submission(submission_id)
        rows = self._conn.execute(
            "SELECT * FROM submission_answers WHERE submission_id = ? ORDER BY id",
            (submission_id,),
        ).fetchall()
        return [_decode_answer(r) for r in rows]

    def get_submissions(self, form_title: str | None = None) -> list[dict]:
        if form_title is None:
            rows = self._conn.execute(
                "SELECT * FROM submissions ORDER BY id"
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM submissions WHERE form_title = ? ORDER BY id",
                (form_title,),
            ).fetchall()
        return [dict(r) for r in rows]

    def delete_submission(self, submission_id: int) -> None:
        self.get_submission(submission_id)
        with self._conn:
            self._conn.execute(
                "DELETE FROM submission_answers WHERE submission_id = ?", (submission_id,)
            )
            self._conn.execute("DELETE FROM submissions WHERE id = ?", (submission_id,))

    # ── Audit Log ────────────────────────────────────────────

    def log_audit(
        self,
        action: str,
        entity_type: str | None = None,
        entity_id: str | int | None = None,
        metadata: dict | None = None,
    ) -> int:
        """Record an audit event. Returns the event id."""
        if not action:
            raise ValueError("Audit action is required")
        cur = self._conn.execute(
            """INSERT INTO audit_log
               (action, entity_type, entity_id, metadata, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (
                action,
                entity_type,
                None if entity_id is None else str(entity_id),
                json.dumps(metadata or {}, default=str),
                _now(),
            ),
        )
        self._conn.commit()
        return cur.lastrowid

    def get_audit_log(self, action: str | None = None) -> list[dict]:
        if action is None:
            rows = self._conn.execute("SELECT * FROM audit_log ORDER BY id").fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM audit_log WHERE action = ? ORDER BY id", (action,)
            ).fetchall()
        events = []
        for r in rows:
            event = dict(r)
            event["metadata"] = json.loads(event["metadata"])
            events.append(event)
        return events

    # ── Stats ────────────────────────────────────────────────

    def get_validation_stats(self, form_title: str | None = None) -> dict:
        """Submission count plus answer-level flag totals."""
        where = ""
        params: tuple = ()
        if form_title is not None:
            where = "WHERE s.form_title = ?"
            params = (form_title,)

        row = self._conn.execute(
            f"""SELECT COUNT(a.id)                         AS total_answers,
                       COALESCE(SUM(a.sentiment_flag), 0)  AS sentiment_flagged,
                       COALESCE(SUM(a.entity_flag), 0)     AS entity_flagged,
                       COALESCE(SUM(a.not_evaluated), 0)   AS not_evaluated
                FROM submission_answers a
                JOIN submissions s ON s.id = a.submission_id
                {where}""",
            params,
        ).fetchone()
        stats = dict(row)
        stats["total_submissions"] = self._conn.execute(
            f"SELECT COUNT(*) FROM submissions s {where}", params
        ).fetchone()[0]
        stats["average_quiz_score"] = self._conn.execute(
            f"SELECT AVG(s.quiz_score) FROM submissions s {where}"
            + (" AND" if where else " WHERE") + " s.quiz_score IS NOT NULL",
            params,
        ).fetchone()[0]
        return stats

    # ── Cleanup ──────────────────────────────────────────────

    def close(self) -> None:
        self._conn.close()


# ── Helpers ──────────────────────────────────────────────────────────


def _decode_answer(row: sqlite3.Row) -> dict:
    answer = dict(row)
    answer["findings"] = json.loads(answer["findings"])
    for flag in ("sentiment_flag", "entity_flag", "not_evaluated"):
        answer[flag] = bool(answer[flag])
    if answer["quiz_correct"] is not None:
        answer["quiz_correct"] = bool(answer["quiz_correct"])
    return answer


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
