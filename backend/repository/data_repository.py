"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from backend.domain.models import Course, HistoryEntry, Occupant, Party, VenueSnapshot
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(str(value))


def _row_to_party(row: sqlite3.Row) -> Party:
    return Party(
        party_id=str(row["party_id"]),
        size=int(row["size"]),
        joined_at=datetime.fromisoformat(str(row["joined_at"])),
        note=str(row["note"] or ""),
    )


def _row_to_occupant(row: sqlite3.Row) -> Occupant:
    return Occupant(
        occupant_id=str(row["occupant_id"]),
        size=int(row["size"]),
        departure_at=datetime.fromisoformat(str(row["departure_at"])),
        course_id=row["course_id"],
        entered_at=_from_iso(row["entered_at"]),
        note=str(row["note"] or ""),
    )


def _row_to_history_entry(row: sqlite3.Row) -> HistoryEntry:
    return HistoryEntry(
        history_id=str(row["history_id"]),
        size=int(row["size"]),
        exited_at=datetime.fromisoformat(str(row["exited_at"])),
        course_id=row["course_id"],
        entered_at=_from_iso(row["entered_at"]),
        note=str(row["note"] or ""),
    )


class DataRepository:
    """Encapsulates SQLite access so queue logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        try:
            with connection:
                yield connection
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Courses (
                        course_id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        minutes INTEGER NOT NULL CHECK (minutes > 0)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS QueueParties (
                        position INTEGER PRIMARY KEY AUTOINCREMENT,
                        party_id TEXT NOT NULL UNIQUE,
                        size INTEGER NOT NULL CHECK (size > 0),
                        note TEXT NOT NULL DEFAULT '',
                        joined_at TEXT NOT NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Occupants (
                        occupant_id TEXT PRIMARY KEY,
                        size INTEGER NOT NULL CHECK (size > 0),
                        note TEXT NOT NULL DEFAULT '',
                        course_id TEXT,
                        entered_at TEXT,
                        departure_at TEXT NOT NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS HistoryEntries (
                        history_id TEXT PRIMARY KEY,
                        size INTEGER NOT NULL CHECK (size > 0),
                        note TEXT NOT NULL DEFAULT '',
                        course_id TEXT,
                        entered_at TEXT,
                        exited_at TEXT NOT NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS VenueSettings (
                        id INTEGER PRIMARY KEY CHECK (id = 1),
                        max_capacity INTEGER NOT NULL CHECK (max_capacity > 0)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_occupants_departure
                    ON Occupants(departure_at);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_history_exited
                    ON HistoryEntries(exited_at);
                    """
                )
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_defaults(self) -> None:
        """Seed default courses and venue settings only when tables are empty."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute("SELECT COUNT(*) AS count FROM Courses;")
                if int(cursor.fetchone()["count"]) == 0:
                    cursor.executemany(
                        "INSERT INTO Courses (course_id, name, minutes) VALUES (?, ?, ?);",
                        [
                            (seed.course_id, seed.name, seed.minutes)
                            for seed in self._settings.default_courses
                        ],
                    )
                    logger.info(
                        "Default courses seeded | count=%s",
                        len(self._settings.default_courses),
                    )

                cursor.execute(
                    "INSERT OR IGNORE INTO VenueSettings (id, max_capacity) VALUES (1, ?);",
                    (self._settings.default_max_capacity,),
                )
        except sqlite3.Error as exc:
            raise RuntimeError(f"Default data seeding failed: {exc}") from exc

    # --- Courses ---

    def _select_courses(self, cursor: sqlite3.Cursor) -> list[Course]:
        cursor.execute("SELECT course_id, name, minutes FROM Courses ORDER BY minutes ASC, course_id ASC;")
        return [
            Course(
                course_id=str(row["course_id"]),
                name=str(row["name"]),
                minutes=int(row["minutes"]),
            )
            for row in cursor.fetchall()
        ]

    def list_courses(self) -> list[Course]:
        with self._connect() as conn:
            return self._select_courses(conn.cursor())

    def get_course(self, course_id: str) -> Optional[Course]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT course_id, name, minutes FROM Courses WHERE course_id = ?;",
                (course_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return Course(
                course_id=str(row["course_id"]),
                name=str(row["name"]),
                minutes=int(row["minutes"]),
            )

    # --- Venue settings ---

    def _select_max_capacity(self, cursor: sqlite3.Cursor) -> int:
        cursor.execute("SELECT max_capacity FROM VenueSettings WHERE id = 1;")
        row = cursor.fetchone()
        if row is None:
            return self._settings.default_max_capacity
        return int(row["max_capacity"])

    def get_max_capacity(self) -> int:
        """Return the configured capacity, falling back to the settings default."""
        with self._connect() as conn:
            return self._select_max_capacity(conn.cursor())

    def set_max_capacity(self, max_capacity: int) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO VenueSettings (id, max_capacity) VALUES (1, ?)
                ON CONFLICT(id) DO UPDATE SET max_capacity = excluded.max_capacity;
                """,
                (max_capacity,),
            )

    # --- Queue ---

    def _select_queue(self, cursor: sqlite3.Cursor) -> list[Party]:
        cursor.execute(
            """
            SELECT party_id, size, note, joined_at
            FROM QueueParties
            ORDER BY position ASC;
            """
        )
        return [_row_to_party(row) for row in cursor.fetchall()]

    def list_queue(self) -> list[Party]:
        """Return queued parties in arrival order."""
        with self._connect() as conn:
            return self._select_queue(conn.cursor())

    def get_party(self, party_id: str) -> Optional[Party]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT party_id, size, note, joined_at FROM QueueParties WHERE party_id = ?;",
                (party_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return _row_to_party(row)

    def add_party(self, party: Party) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO QueueParties (party_id, size, note, joined_at)
                VALUES (?, ?, ?, ?);
                """,
                (party.party_id, party.size, party.note, _to_iso(party.joined_at)),
            )

    def remove_party(self, party_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM QueueParties WHERE party_id = ?;",
                (party_id,),
            )
            return cursor.rowcount > 0

    # --- Occupants ---

    def _select_occupants(self, cursor: sqlite3.Cursor) -> list[Occupant]:
        cursor.execute(
            """
            SELECT occupant_id, size, note, course_id, entered_at, departure_at
            FROM Occupants
            ORDER BY departure_at ASC, occupant_id ASC;
            """
        )
        return [_row_to_occupant(row) for row in cursor.fetchall()]

    def list_occupants(self) -> list[Occupant]:
        """Return occupants ordered by departure, earliest first."""
        with self._connect() as conn:
            return self._select_occupants(conn.cursor())

    # --- Estimation snapshot ---

    def load_snapshot(self) -> VenueSnapshot:
        """Read everything the estimator needs inside one read transaction."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("BEGIN;")
            return VenueSnapshot(
                queue=self._select_queue(cursor),
                occupants=self._select_occupants(cursor),
                courses=self._select_courses(cursor),
                max_capacity=self._select_max_capacity(cursor),
            )

    def move_party_to_inside(
        self,
        *,
        party_id: str,
        occupant_id: str,
        course_id: str,
        entered_at: datetime,
        departure_at: datetime,
    ) -> Optional[Occupant]:
        """Atomically replace a queued party with an occupant row."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT party_id, size, note, joined_at FROM QueueParties WHERE party_id = ?;",
                (party_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            party = _row_to_party(row)
            occupant = Occupant(
                occupant_id=occupant_id,
                size=party.size,
                departure_at=departure_at,
                course_id=course_id,
                entered_at=entered_at,
                note=party.note,
            )
            cursor.execute(
                """
                INSERT INTO Occupants (occupant_id, size, note, course_id, entered_at, departure_at)
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (
                    occupant.occupant_id,
                    occupant.size,
                    occupant.note,
                    occupant.course_id,
                    _to_iso(occupant.entered_at),
                    _to_iso(occupant.departure_at),
                ),
            )
            cursor.execute("DELETE FROM QueueParties WHERE party_id = ?;", (party_id,))
            return occupant

    def checkout_occupant(
        self,
        *,
        occupant_id: str,
        history_id: str,
        exited_at: datetime,
    ) -> Optional[HistoryEntry]:
        """Atomically move an occupant row into the history table."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT occupant_id, size, note, course_id, entered_at, departure_at
                FROM Occupants
                WHERE occupant_id = ?;
                """,
                (occupant_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            occupant = _row_to_occupant(row)
            entry = HistoryEntry(
                history_id=history_id,
                size=occupant.size,
                exited_at=exited_at,
                course_id=occupant.course_id,
                entered_at=occupant.entered_at,
                note=occupant.note,
            )
            cursor.execute(
                """
                INSERT INTO HistoryEntries (history_id, size, note, course_id, entered_at, exited_at)
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (
                    entry.history_id,
                    entry.size,
                    entry.note,
                    entry.course_id,
                    _to_iso(entry.entered_at),
                    _to_iso(entry.exited_at),
                ),
            )
            cursor.execute("DELETE FROM Occupants WHERE occupant_id = ?;", (occupant_id,))
            return entry

    def delete_occupant(self, occupant_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM Occupants WHERE occupant_id = ?;",
                (occupant_id,),
            )
            return cursor.rowcount > 0

    # --- History ---

    def list_history(self) -> list[HistoryEntry]:
        """Return history entries, most recent exit first."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT history_id, size, note, course_id, entered_at, exited_at
                FROM HistoryEntries
                ORDER BY exited_at DESC, history_id ASC;
                """
            )
            return [_row_to_history_entry(row) for row in cursor.fetchall()]

    def delete_history_entry(self, history_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM HistoryEntries WHERE history_id = ?;",
                (history_id,),
            )
            return cursor.rowcount > 0

    def count_history_entries(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM HistoryEntries;")
            return int(cursor.fetchone()["count"])
