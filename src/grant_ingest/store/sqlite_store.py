"""SQLite-backed grant store with delta upsert and run accounting."""

import json
import logging
import sqlite3
import uuid
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from grant_ingest.errors import RunAlreadyRecordedError
from grant_ingest.models.grant import CanonicalGrant, mutable_fields
from grant_ingest.models.run import FailedItem, PipelineRunStats, RecordOutcome

logger = logging.getLogger(__name__)

_LIST_COLUMNS = ("activity_category", "eligible_applicants")
_BOOL_COLUMNS = ("cost_sharing", "grantor_contact_phone_valid")
# Failed items logged individually at the end of a run
_FAILURE_LOG_LIMIT = 10


def _now() -> datetime:
    return datetime.now(timezone.utc)


class GrantStore:
    """
    SQLite store for canonical grants keyed by opportunity_id.
    Records are written in fixed-size batches; members of a batch are written
    concurrently and the batch is joined before the next one starts.
    With track_unchanged, a key match whose fields all equal the stored row is
    classified unchanged and not rewritten.
    """

    def __init__(
        self,
        db_path: str | Path = "grant_ingest.db",
        batch_size: int = 50,
        max_workers: int = 8,
        track_unchanged: bool = True,
    ):
        self._db_path = Path(db_path)
        self.batch_size = max(1, batch_size)
        self.max_workers = max(1, max_workers)
        self.track_unchanged = track_unchanged
        self._ensure_schema()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        schema_path = Path(__file__).parent / "schema.sql"
        if self._db_path.parent != Path("."):
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection() as conn:
            conn.executescript(schema_path.read_text())

    def _row_values(self, grant: CanonicalGrant) -> dict[str, Any]:
        """Mutable column values for one grant, as stored."""
        data = grant.model_dump(mode="json")
        values: dict[str, Any] = {}
        for name in mutable_fields():
            value = data[name]
            if name in _LIST_COLUMNS:
                value = json.dumps(value or [])
            elif name in _BOOL_COLUMNS and value is not None:
                value = int(value)
            values[name] = value
        return values

    def _row_to_grant(self, row: sqlite3.Row) -> CanonicalGrant:
        data = {key: row[key] for key in row.keys() if key != "id"}
        for name in _LIST_COLUMNS:
            data[name] = json.loads(data[name] or "[]")
        for name in _BOOL_COLUMNS:
            if data[name] is not None:
                data[name] = bool(data[name])
        return CanonicalGrant.model_validate(data)

    def _lookup(self, conn: sqlite3.Connection, opportunity_id: str) -> Optional[sqlite3.Row]:
        return conn.execute(
            "SELECT * FROM grants WHERE opportunity_id = ?", (opportunity_id,)
        ).fetchone()

    def upsert(self, grant: CanonicalGrant) -> RecordOutcome:
        """Insert or update one grant by natural key. Returns its classification."""
        values = self._row_values(grant)
        now = _now().isoformat()
        with self._connection() as conn:
            existing = self._lookup(conn, grant.opportunity_id)
            if existing is None:
                columns = ["id", "opportunity_id", *values.keys(), "created_at", "updated_at"]
                params = [str(uuid.uuid4()), grant.opportunity_id, *values.values(), now, now]
                conn.execute(
                    f"INSERT INTO grants ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
                    params,
                )
                return RecordOutcome.NEW

            if self.track_unchanged and all(existing[k] == v for k, v in values.items()):
                return RecordOutcome.UNCHANGED

            assignments = ", ".join(f"{k} = ?" for k in values)
            conn.execute(
                f"UPDATE grants SET {assignments}, updated_at = ? WHERE id = ?",
                [*values.values(), now, existing["id"]],
            )
            return RecordOutcome.UPDATED

    def _store_one(self, grant: CanonicalGrant) -> tuple[RecordOutcome, Optional[str]]:
        try:
            return self.upsert(grant), None
        except Exception as e:
            logger.warning("Failed to store grant %s: %s", grant.opportunity_id, e)
            return RecordOutcome.FAILED, str(e)

    def store(
        self,
        grants: list[CanonicalGrant],
        stats: Optional[PipelineRunStats] = None,
    ) -> PipelineRunStats:
        """
        Upsert all grants in batches and persist the run statistics once.
        Per-record failures are counted, never raised. If every record fails
        the run is recorded as failed.
        """
        stats = stats or PipelineRunStats()
        stats.total = len(grants)
        batches = [grants[i : i + self.batch_size] for i in range(0, len(grants), self.batch_size)]
        try:
            for index, batch in enumerate(batches, start=1):
                with ThreadPoolExecutor(max_workers=min(self.max_workers, len(batch))) as pool:
                    outcomes = list(pool.map(self._store_one, batch))
                for grant, (outcome, error) in zip(batch, outcomes):
                    stats.count(outcome, grant.opportunity_id, error)
                logger.info(
                    "Stored batch %d/%d: %d new, %d updated, %d unchanged, %d failed so far",
                    index,
                    len(batches),
                    stats.new,
                    stats.updated,
                    stats.unchanged,
                    stats.failed,
                )
        except Exception as e:
            stats.error = str(e)
            stats.end_time = _now()
            if not stats.is_recorded:
                self.record_run(stats)
            raise

        stats.end_time = _now()
        self._log_failures(stats)
        self.record_run(stats)
        logger.info(
            "Run %s %s: %d total, %d new, %d updated, %d unchanged, %d failed in %dms",
            stats.run_id,
            stats.status,
            stats.total,
            stats.new,
            stats.updated,
            stats.unchanged,
            stats.failed,
            stats.duration_ms,
        )
        return stats

    def _log_failures(self, stats: PipelineRunStats) -> None:
        if not stats.failed_items:
            return
        logger.warning("%d of %d grants failed to store", stats.failed, stats.total)
        for item in stats.failed_items[:_FAILURE_LOG_LIMIT]:
            logger.warning("  %s: %s", item.id, item.error)
        remaining = len(stats.failed_items) - _FAILURE_LOG_LIMIT
        if remaining > 0:
            logger.warning("  ... and %d more", remaining)

    def record_run(self, stats: PipelineRunStats) -> int:
        """Persist run statistics. Each stats object may be recorded once."""
        if stats.is_recorded:
            raise RunAlreadyRecordedError(f"Run {stats.run_id} is already recorded")
        failed_items = json.dumps([item.model_dump() for item in stats.failed_items])
        with self._connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO pipeline_runs (
                    source, status, items_total, items_new, items_updated, items_unchanged,
                    items_failed, started_at, finished_at, duration_ms, error, failed_items
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    stats.source,
                    stats.status,
                    stats.total,
                    stats.new,
                    stats.updated,
                    stats.unchanged,
                    stats.failed,
                    stats.start_time.isoformat(),
                    stats.end_time.isoformat() if stats.end_time else None,
                    stats.duration_ms,
                    stats.error,
                    failed_items,
                ),
            )
            run_id = cursor.lastrowid
        stats.run_id = run_id
        return run_id or 0

    def latest_run(self) -> Optional[PipelineRunStats]:
        """Most recently recorded run, or None."""
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM pipeline_runs ORDER BY id DESC LIMIT 1").fetchone()
        if row is None:
            return None
        return PipelineRunStats(
            run_id=row["id"],
            source=row["source"],
            total=row["items_total"],
            new=row["items_new"],
            updated=row["items_updated"],
            unchanged=row["items_unchanged"],
            failed=row["items_failed"],
            start_time=datetime.fromisoformat(row["started_at"]),
            end_time=datetime.fromisoformat(row["finished_at"]) if row["finished_at"] else None,
            error=row["error"],
            failed_items=[FailedItem(**item) for item in json.loads(row["failed_items"] or "[]")],
        )

    def existing_keys(self) -> set[str]:
        """All stored opportunity_ids."""
        with self._connection() as conn:
            rows = conn.execute("SELECT opportunity_id FROM grants").fetchall()
        return {r["opportunity_id"] for r in rows}

    def get(self, opportunity_id: str) -> Optional[CanonicalGrant]:
        """Get single grant by opportunity_id."""
        with self._connection() as conn:
            row = self._lookup(conn, opportunity_id)
        return self._row_to_grant(row) if row else None

    def get_all(self) -> list[CanonicalGrant]:
        """Return all grants, most recently updated first."""
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM grants ORDER BY updated_at DESC, opportunity_id").fetchall()
        return [self._row_to_grant(r) for r in rows]

    def count(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM grants").fetchone()[0]

    def delete_expired(self, today: Optional[date] = None) -> int:
        """Delete grants whose close_date is before today. Returns rows deleted."""
        cutoff = (today or date.today()).isoformat()
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM grants WHERE close_date IS NOT NULL AND close_date < ?", (cutoff,)
            )
            deleted = cursor.rowcount
        logger.info("Deleted %d expired grants (close_date < %s)", deleted, cutoff)
        return deleted
