"""SQLite-backed per-module state store.

The store is the only mutable resource shared between workers. Each
thread gets its own connection (WAL mode where available) and writes are
serialised through a process-wide lock, so a module record is never
written by two workers at once.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

from repomigrate.errors import InvalidTransition, StateError
from repomigrate.runtime.lifecycle import RESUME_STATE, ModuleState, Stage, can_transition
from repomigrate.runtime.records import (
    ExtractionRecord,
    ModuleRecord,
    ValidationReport,
    utc_now,
)

logger = logging.getLogger("repomigrate.runtime.state_store")

_UNSET = object()


class StateStore:
    """Thread-safe persisted lifecycle state, one row per module."""

    def __init__(self, db_path: Path):
        """Initialize the store and create the schema if needed.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._local = threading.local()
        self._connections: Set[sqlite3.Connection] = set()
        self._conn_lock = threading.Lock()
        self._write_lock = threading.RLock()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @property
    def path(self) -> Path:
        return self._db_path

    def _get_conn(self) -> sqlite3.Connection:
        if getattr(self._local, "conn", None) is None:
            conn = sqlite3.connect(
                str(self._db_path),
                timeout=30.0,
                isolation_level=None,
                check_same_thread=False,
            )
            try:
                try:
                    result = conn.execute("PRAGMA journal_mode=WAL").fetchone()
                    if result and result[0].upper() != "WAL":
                        logger.debug("WAL mode not available, using default journal mode")
                except sqlite3.OperationalError:
                    logger.debug("Failed to set WAL mode, using default")
                conn.execute("PRAGMA synchronous=NORMAL")
                conn.row_factory = sqlite3.Row
                with self._conn_lock:
                    self._connections.add(conn)
                self._local.conn = conn
                logger.debug(
                    "Created new SQLite connection for thread %s",
                    threading.current_thread().name,
                )
            except Exception:
                conn.close()
                raise
        return self._local.conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Serialised write transaction (BEGIN IMMEDIATE)."""
        with self._write_lock:
            conn = self._get_conn()
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

    def _init_db(self) -> None:
        conn = self._get_conn()
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS modules (
                name TEXT PRIMARY KEY,
                state TEXT NOT NULL,
                failed_stage TEXT,
                last_error TEXT,
                extraction TEXT,  -- JSON encoded ExtractionRecord
                validation TEXT,  -- JSON encoded ValidationReport
                updated_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS transitions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                module TEXT NOT NULL,
                from_state TEXT NOT NULL,
                to_state TEXT NOT NULL,
                stage TEXT,
                detail TEXT,
                at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_transitions_module ON transitions(module);
            CREATE TABLE IF NOT EXISTS accepted_phases (
                phase INTEGER PRIMARY KEY,
                note TEXT,
                accepted_at TEXT NOT NULL
            );
        """
        )
        logger.debug("State store schema initialized at %s", self._db_path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> ModuleRecord:
        extraction = (
            ExtractionRecord.from_dict(json.loads(row["extraction"]))
            if row["extraction"]
            else None
        )
        validation = (
            ValidationReport.from_dict(json.loads(row["validation"]))
            if row["validation"]
            else None
        )
        return ModuleRecord(
            name=row["name"],
            state=ModuleState(row["state"]),
            failed_stage=Stage(row["failed_stage"]) if row["failed_stage"] else None,
            last_error=row["last_error"],
            extraction=extraction,
            validation=validation,
            updated_at=row["updated_at"],
        )

    def get(self, name: str) -> ModuleRecord:
        """Return the persisted record of ``name`` (a Pending record if absent)."""
        row = self._get_conn().execute(
            "SELECT * FROM modules WHERE name = ?", (name,)
        ).fetchone()
        if row is None:
            return ModuleRecord(name=name)
        return self._row_to_record(row)

    def all_records(self) -> Dict[str, ModuleRecord]:
        rows = self._get_conn().execute("SELECT * FROM modules ORDER BY name").fetchall()
        return {row["name"]: self._row_to_record(row) for row in rows}

    def history(self, name: str) -> List[Tuple[str, str, Optional[str], Optional[str], str]]:
        """Return the audit trail of ``name`` as (from, to, stage, detail, at) rows."""
        rows = self._get_conn().execute(
            "SELECT from_state, to_state, stage, detail, at FROM transitions "
            "WHERE module = ? ORDER BY id",
            (name,),
        ).fetchall()
        return [tuple(row) for row in rows]

    def accepted_phases(self) -> Set[int]:
        rows = self._get_conn().execute("SELECT phase FROM accepted_phases").fetchall()
        return {int(row["phase"]) for row in rows}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _write(
        self,
        conn: sqlite3.Connection,
        current: ModuleRecord,
        target: ModuleState,
        stage: Optional[Stage],
        error: Optional[str],
        extraction: object,
        validation: object,
    ) -> ModuleRecord:
        new_extraction = current.extraction if extraction is _UNSET else extraction
        new_validation = current.validation if validation is _UNSET else validation
        failed_stage = stage if target is ModuleState.FAILED else None
        last_error = error if target is ModuleState.FAILED else None
        now = utc_now()
        conn.execute(
            "INSERT OR REPLACE INTO modules "
            "(name, state, failed_stage, last_error, extraction, validation, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                current.name,
                target.value,
                failed_stage.value if failed_stage else None,
                last_error,
                json.dumps(new_extraction.to_dict()) if new_extraction else None,
                json.dumps(new_validation.to_dict()) if new_validation else None,
                now,
            ),
        )
        conn.execute(
            "INSERT INTO transitions (module, from_state, to_state, stage, detail, at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                current.name,
                current.state.value,
                target.value,
                stage.value if stage else None,
                error,
                now,
            ),
        )
        return ModuleRecord(
            name=current.name,
            state=target,
            failed_stage=failed_stage,
            last_error=last_error,
            extraction=new_extraction,
            validation=new_validation,
            updated_at=now,
        )

    def transition(
        self,
        name: str,
        target: ModuleState,
        *,
        stage: Optional[Stage] = None,
        error: Optional[str] = None,
        extraction: object = _UNSET,
        validation: object = _UNSET,
    ) -> ModuleRecord:
        """Move ``name`` to ``target`` and persist attached records.

        Args:
            name: Module name.
            target: Desired lifecycle state.
            stage: Stage a failure is attributed to (required for FAILED).
            error: Failure reason (FAILED only).
            extraction: Extraction record to store (unchanged when omitted).
            validation: Validation report to store (unchanged when omitted).

        Returns:
            ModuleRecord: The persisted record.

        Raises:
            InvalidTransition: If the lifecycle table forbids the move.
        """
        if target is ModuleState.FAILED and stage is None:
            raise ValueError("A failed transition needs the failing stage")
        with self._transaction() as conn:
            current = self.get(name)
            if not can_transition(current.state, target):
                raise InvalidTransition(name, current.state, target)
            record = self._write(conn, current, target, stage, error, extraction, validation)
        logger.debug("%s: %s -> %s", name, current.state, target)
        return record

    def record_extraction(self, name: str, extraction: ExtractionRecord) -> None:
        """Attach ``extraction`` to ``name`` without changing its state.

        Written before the destination is moved into place, so a later
        failure in the same stage still leaves a recognisable destination.
        """
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO modules (name, state, extraction, updated_at) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT(name) DO UPDATE SET "
                "extraction = excluded.extraction, updated_at = excluded.updated_at",
                (
                    name,
                    ModuleState.PENDING.value,
                    json.dumps(extraction.to_dict()),
                    utc_now(),
                ),
            )
        logger.debug("%s: extraction record stored for %s", name, extraction.destination)

    def acknowledge(self, name: str, mark_published: bool = False) -> ModuleRecord:
        """Operator acknowledgement of a failed module.

        The module re-enters the pipeline at the start of the stage that
        failed. ``mark_published`` records a publication the operator
        verified by hand (e.g. after a propagation timeout).

        Raises:
            StateError: If the module is not in the Failed state.
        """
        with self._transaction() as conn:
            current = self.get(name)
            if current.state is not ModuleState.FAILED:
                raise StateError(
                    f"{name} is {current.state}; only failed modules can be acknowledged"
                )
            if mark_published:
                target = ModuleState.PUBLISHED
            else:
                target = RESUME_STATE[current.failed_stage or Stage.EXTRACT]
            record = self._write(
                conn, current, target, None, "acknowledged", _UNSET, _UNSET
            )
        logger.info("%s acknowledged: %s -> %s", name, current.state, target)
        return record

    def accept_phase(self, phase: int, note: Optional[str] = None) -> None:
        """Record operator acceptance of a partially published phase."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO accepted_phases (phase, note, accepted_at) "
                "VALUES (?, ?, ?)",
                (phase, note, utc_now()),
            )
        logger.info("Phase %d accepted as partial", phase)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the calling thread's connection."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            try:
                conn.close()
            except sqlite3.Error as e:
                logger.debug("Error closing SQLite connection: %s", e)
            with self._conn_lock:
                self._connections.discard(conn)
            self._local.conn = None

    def close_all(self) -> None:
        """Close every connection opened by any thread."""
        with self._conn_lock:
            conns = list(self._connections)
            self._connections.clear()
        for conn in conns:
            try:
                conn.close()
            except sqlite3.Error as e:
                logger.debug("Error closing SQLite connection: %s", e)
        self._local.conn = None


__all__ = ["StateStore"]
