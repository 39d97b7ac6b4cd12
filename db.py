import copy
import json
import sqlite3
from contextlib import contextmanager
from typing import Iterable, List, Optional, Tuple

from loguru import logger

from config import YamlConfig
from errors import NotFoundError
from models import (
    ENTITY_KINDS,
    Client,
    CoachProfile,
    Entity,
    Workout,
    new_id,
    to_wire_keys,
    utcnow,
    validate,
)
from settings_schema import SettingsSchema, load_settings, validate_settings

SCHEMA_VERSION = 2

WORKOUTS = "workouts"
CLIENTS = "clients"
COACH_PROFILE = "coachProfile"
TABLES = (WORKOUTS, CLIENTS, COACH_PROFILE)


def migrate_workout(record: dict) -> dict:
    """Return ``record`` rewritten to the Week -> Day -> Exercise layout.

    Weeks that still hold ``exercises`` directly get a single synthetic
    "Day 1" wrapping them. Exercises without ``rest`` and days without
    ``notes`` receive empty strings. The input is not modified and applying
    the function to its own output changes nothing.
    """
    data = copy.deepcopy(record)
    if not isinstance(data.get("weeks"), list):
        return data
    for week in data["weeks"]:
        if not isinstance(week, dict):
            continue
        if "exercises" in week and week.get("days") is None:
            week["days"] = [
                {
                    "id": new_id(),
                    "name": "Day 1",
                    "exercises": week.pop("exercises") or [],
                    "notes": "",
                }
            ]
            if not week.get("notes"):
                week["notes"] = ""
        for day in week.get("days") or []:
            if not isinstance(day, dict):
                continue
            for exercise in day.get("exercises") or []:
                if isinstance(exercise, dict) and exercise.get("rest") is None:
                    exercise["rest"] = ""
            if day.get("notes") is None:
                day["notes"] = ""
    return data


def _plain(value):
    """Dump nested entities so they are re-validated rather than trusted."""
    if isinstance(value, Entity):
        return value.model_dump(by_alias=True)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "workouts": (
            """CREATE TABLE workouts (
                    id TEXT PRIMARY KEY,
                    client_name TEXT NOT NULL,
                    coach_name TEXT NOT NULL,
                    workout_type TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    data TEXT NOT NULL
                );""",
            [
                "id",
                "client_name",
                "coach_name",
                "workout_type",
                "created_at",
                "updated_at",
                "data",
            ],
        ),
        "clients": (
            """CREATE TABLE clients (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    data TEXT NOT NULL
                );""",
            ["id", "name", "created_at", "data"],
        ),
        "coach_profile": (
            """CREATE TABLE coach_profile (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    data TEXT NOT NULL
                );""",
            ["id", "name", "data"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    _INDEXES = (
        "CREATE INDEX IF NOT EXISTS idx_workouts_client_name ON workouts(client_name);",
        "CREATE INDEX IF NOT EXISTS idx_clients_name ON clients(name);",
    )

    def __init__(self, db_path: str = "plans.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._migrate()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            for sql in self._INDEXES:
                conn.execute(sql)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col == "data":
                        return "'{}'"
                    return "''"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    def _migrate(self) -> None:
        with self._connection() as conn:
            version = conn.execute("PRAGMA user_version;").fetchone()[0]
            if version >= SCHEMA_VERSION:
                return
            changed = self._rewrite_workouts(conn)
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
        logger.info(
            f"Migrated {self._db_path} from schema v{version} to v{SCHEMA_VERSION} "
            f"({changed} workouts rewritten)"
        )

    @staticmethod
    def _rewrite_workouts(conn: sqlite3.Connection) -> int:
        changed = 0
        rows = conn.execute("SELECT id, data FROM workouts;").fetchall()
        for workout_id, data in rows:
            record = json.loads(data)
            migrated = migrate_workout(record)
            if migrated != record:
                conn.execute(
                    "UPDATE workouts SET data = ? WHERE id = ?;",
                    (json.dumps(migrated), workout_id),
                )
                changed += 1
        return changed

    def migrate_workouts(self) -> int:
        """Run the structural workout migration regardless of schema version."""
        with self._connection() as conn:
            changed = self._rewrite_workouts(conn)
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
        return changed


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


class RecordRepository(BaseRepository):
    """Stores validated entities as JSON documents with indexed columns."""

    table = ""
    kind = ""
    order_by = "rowid"

    def _columns(self, entity: Entity) -> dict:
        return {}

    def _load(self, data: str) -> Entity:
        return validate(json.loads(data), self.kind)

    def _insert(self, conn: sqlite3.Connection, entity: Entity, replace: bool = False) -> None:
        values = {"id": entity.id, **self._columns(entity), "data": json.dumps(entity.to_dict())}
        cols = ", ".join(values)
        marks = ", ".join("?" for _ in values)
        verb = "INSERT OR REPLACE" if replace else "INSERT"
        conn.execute(
            f"{verb} INTO {self.table} ({cols}) VALUES ({marks});",
            tuple(values.values()),
        )

    def all(self) -> list:
        rows = self.fetch_all(f"SELECT data FROM {self.table} ORDER BY {self.order_by};")
        return [self._load(data) for (data,) in rows]

    def get(self, record_id: str) -> Optional[Entity]:
        rows = self.fetch_all(
            f"SELECT data FROM {self.table} WHERE id = ?;", (record_id,)
        )
        return self._load(rows[0][0]) if rows else None

    def add(self, entity: Entity) -> Entity:
        with self._connection() as conn:
            self._insert(conn, entity)
        return entity

    def save(self, entity: Entity) -> Entity:
        with self._connection() as conn:
            self._insert(conn, entity, replace=True)
        return entity

    def delete(self, record_id: str) -> bool:
        with self._connection() as conn:
            cur = conn.execute(f"DELETE FROM {self.table} WHERE id = ?;", (record_id,))
            return cur.rowcount > 0

    def delete_all(self) -> None:
        self._delete_all(self.table)


class WorkoutRepository(RecordRepository):
    """Repository for workout plans."""

    table = "workouts"
    kind = "workout"
    order_by = "updated_at DESC"

    def _columns(self, entity: Workout) -> dict:
        return {
            "client_name": entity.client_name,
            "coach_name": entity.coach_name,
            "workout_type": entity.workout_type,
            "created_at": entity.created_at.isoformat(),
            "updated_at": entity.updated_at.isoformat(),
        }

    def fetch_by_client(self, client_name: str) -> List[Workout]:
        rows = self.fetch_all(
            f"SELECT data FROM workouts WHERE client_name = ? ORDER BY {self.order_by};",
            (client_name,),
        )
        return [self._load(data) for (data,) in rows]

    def search(
        self, term: Optional[str] = None, workout_type: Optional[str] = None
    ) -> List[Workout]:
        """Return workouts whose client, coach or type matches ``term``."""
        query = "SELECT data FROM workouts"
        params: list[str] = []
        where_clauses: list[str] = []
        if term:
            like = f"%{term.lower()}%"
            where_clauses.append(
                "(lower(client_name) LIKE ? OR lower(coach_name) LIKE ? OR lower(workout_type) LIKE ?)"
            )
            params.extend([like, like, like])
        if workout_type:
            where_clauses.append("workout_type = ?")
            params.append(workout_type)
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += f" ORDER BY {self.order_by};"
        return [self._load(data) for (data,) in self.fetch_all(query, tuple(params))]


class ClientRepository(RecordRepository):
    """Repository for coached clients."""

    table = "clients"
    kind = "client"
    order_by = "created_at DESC"

    def _columns(self, entity: Client) -> dict:
        return {"name": entity.name, "created_at": entity.created_at.isoformat()}

    def fetch_by_name(self, name: str) -> Optional[Client]:
        rows = self.fetch_all(
            "SELECT data FROM clients WHERE name = ? ORDER BY rowid LIMIT 1;", (name,)
        )
        return self._load(rows[0][0]) if rows else None


class CoachProfileRepository(RecordRepository):
    """Single-row repository for the coach profile."""

    table = "coach_profile"
    kind = "coachProfile"

    def _columns(self, entity: CoachProfile) -> dict:
        return {"name": entity.name}

    def current(self) -> Optional[CoachProfile]:
        rows = self.fetch_all("SELECT data FROM coach_profile ORDER BY rowid LIMIT 1;")
        return self._load(rows[0][0]) if rows else None

    def replace(self, profile: CoachProfile) -> CoachProfile:
        with self._connection() as conn:
            conn.execute("DELETE FROM coach_profile;")
            self._insert(conn, profile)
        return profile


class LocalStore:
    """Keyed storage of the workouts, clients and coachProfile tables.

    Writes are single-record, last-write-wins replacements. Two processes
    updating the same record can drop one another's field changes.
    """

    def __init__(self, db_path: str = "plans.db") -> None:
        self.db_path = db_path
        self.workouts = WorkoutRepository(db_path)
        self.clients = ClientRepository(db_path)
        self.coach_profiles = CoachProfileRepository(db_path)
        self._repos = {
            WORKOUTS: self.workouts,
            CLIENTS: self.clients,
            COACH_PROFILE: self.coach_profiles,
        }

    def _repo(self, table: str) -> RecordRepository:
        try:
            return self._repos[table]
        except KeyError:
            raise ValueError(f"unknown table: {table}")

    def get_all(self, table: str) -> list:
        return self._repo(table).all()

    def get_by_id(self, table: str, record_id: str) -> Optional[Entity]:
        return self._repo(table).get(record_id)

    def create(self, table: str, record) -> Entity:
        """Validate ``record``, assign a fresh id and creation stamps, persist it.

        Workouts are normalized to the current week layout first. Creating a
        coach profile replaces any existing profile.
        """
        repo = self._repo(table)
        model_cls = ENTITY_KINDS[repo.kind]
        if isinstance(record, Entity):
            record = record.model_dump(by_alias=True)
        data = {k: _plain(v) for k, v in to_wire_keys(model_cls, dict(record)).items()}
        data["id"] = new_id()
        now = utcnow()
        if table == WORKOUTS:
            data["createdAt"] = now
            data["updatedAt"] = now
            data = migrate_workout(data)
        elif table == CLIENTS:
            data["createdAt"] = now
        entity = validate(data, repo.kind)
        if table == COACH_PROFILE:
            return self.coach_profiles.replace(entity)
        return repo.add(entity)

    def update(self, table: str, record_id: str, fields: dict) -> Entity:
        """Merge ``fields`` onto the stored record and persist the result."""
        repo = self._repo(table)
        existing = repo.get(record_id)
        if existing is None:
            raise NotFoundError(f"{repo.kind} {record_id} not found")
        changes = {
            k: _plain(v)
            for k, v in to_wire_keys(ENTITY_KINDS[repo.kind], dict(fields)).items()
        }
        for key in ("id", "createdAt"):
            changes.pop(key, None)
        merged = existing.model_dump(by_alias=True)
        merged.update(changes)
        if table == WORKOUTS:
            merged["updatedAt"] = utcnow()
            merged = migrate_workout(merged)
        entity = validate(merged, repo.kind)
        return repo.save(entity)

    def delete(self, table: str, record_id: str) -> bool:
        return self._repo(table).delete(record_id)

    def clear_all(self) -> None:
        with self.workouts._connection() as conn:
            for repo in self._repos.values():
                conn.execute(f"DELETE FROM {repo.table};")

    def replace_all(
        self,
        workouts: Iterable[Workout],
        clients: Iterable[Client],
        coach_profile: Optional[CoachProfile],
    ) -> None:
        """Swap the whole store content in one transaction.

        If any insert fails nothing is committed and the previous content
        stays in place.
        """
        workouts = list(workouts)
        clients = list(clients)
        with self.workouts._connection() as conn:
            for repo in self._repos.values():
                conn.execute(f"DELETE FROM {repo.table};")
            for workout in workouts:
                self.workouts._insert(conn, workout)
            for client in clients:
                self.clients._insert(conn, client)
            if coach_profile is not None:
                self.coach_profiles._insert(conn, coach_profile)
        logger.info(
            f"Store replaced: {len(workouts)} workouts, {len(clients)} clients, "
            f"coach profile {'present' if coach_profile else 'absent'}"
        )

    def coach_profile(self) -> Optional[CoachProfile]:
        return self.coach_profiles.current()

    def workouts_by_client(self, client_name: str) -> List[Workout]:
        return self.workouts.fetch_by_client(client_name)

    def client_by_name(self, name: str) -> Optional[Client]:
        return self.clients.fetch_by_name(name)

    def search_workouts(
        self, term: Optional[str] = None, workout_type: Optional[str] = None
    ) -> List[Workout]:
        return self.workouts.search(term, workout_type)


class SettingsRepository(BaseRepository):
    """Repository for application settings synchronized with YAML."""

    def __init__(
        self, db_path: str = "plans.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._init_settings()
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _init_settings(self) -> None:
        defaults = SettingsSchema().model_dump()
        with self._connection() as conn:
            for key, value in defaults.items():
                if value is None:
                    continue
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, str(value)),
                )

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        return {k: v for k, v in rows}

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                if value is None:
                    conn.execute("DELETE FROM settings WHERE key = ?;", (key,))
                    continue
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, str(value)),
                )

    def _sync_to_yaml(self) -> None:
        data = {}
        for key, value in self._raw_all_settings().items():
            try:
                data[key] = int(value)
            except ValueError:
                data[key] = value
        data.update(self.app_settings().model_dump(exclude_none=True))
        self._yaml.save(data)

    def get_text(self, key: str, default: str) -> str:
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def set_text(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(value))

    def get_bool(self, key: str, default: bool) -> bool:
        return self.get_text(key, "1" if default else "0") in {
            "1",
            "true",
            "True",
            "1.0",
        }

    def app_settings(self) -> SettingsSchema:
        """Return the typed application settings."""
        return load_settings(self._raw_all_settings())
