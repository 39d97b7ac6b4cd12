import datetime
import json
from typing import List, Optional

from loguru import logger

from db import CLIENTS, WORKOUTS, LocalStore, SettingsRepository, migrate_workout
from errors import InvalidFormatError, ValidationError
from models import Entity, validate

FORMAT_ERROR = "backup format invalid"


def backup_filename(today: Optional[datetime.date] = None) -> str:
    today = today or datetime.date.today()
    return f"backup-{today.isoformat()}.json"


def _check_shape(data) -> None:
    if not isinstance(data, dict):
        raise InvalidFormatError(FORMAT_ERROR)
    for key in (WORKOUTS, CLIENTS):
        if data.get(key) is not None and not isinstance(data[key], list):
            raise InvalidFormatError(FORMAT_ERROR)
    profile = data.get("coachProfile")
    if profile is not None and not isinstance(profile, dict):
        raise InvalidFormatError(FORMAT_ERROR)


def _stage(records: list, kind: str, label: str) -> List[Entity]:
    staged = []
    errors = []
    seen = set()
    for idx, record in enumerate(records):
        try:
            entity = validate(record, kind)
        except ValidationError as e:
            errors.extend((f"{label}[{idx}].{field}", reason) for field, reason in e.errors)
            continue
        if entity.id in seen:
            errors.append((f"{label}[{idx}].id", "duplicate id"))
        seen.add(entity.id)
        staged.append(entity)
    if errors:
        raise ValidationError(errors)
    return staged


class BackupManager:
    """Exports the whole store as one JSON envelope and restores it."""

    def __init__(
        self, store: LocalStore, settings: Optional[SettingsRepository] = None
    ) -> None:
        self.store = store
        self.settings = settings

    def export(self) -> dict:
        profile = self.store.coach_profile()
        return {
            "workouts": [w.to_dict() for w in self.store.get_all(WORKOUTS)],
            "clients": [c.to_dict() for c in self.store.get_all(CLIENTS)],
            "coachProfile": profile.to_dict() if profile else None,
        }

    def export_json(self) -> str:
        """Serialize the store and remember when the backup was taken."""
        text = json.dumps(self.export(), indent=2, ensure_ascii=False)
        if self.settings is not None:
            self.settings.set_text(
                "last_backup_date",
                datetime.datetime.now(datetime.timezone.utc).isoformat(),
            )
        return text

    def backup_filename(self, today: Optional[datetime.date] = None) -> str:
        return backup_filename(today)

    def import_envelope(self, data) -> dict:
        """Replace the store content with the records of ``data``.

        Every record is validated before anything is written. On any
        failure the store keeps its previous content.
        """
        _check_shape(data)
        workouts = _stage(
            [migrate_workout(w) if isinstance(w, dict) else w for w in data.get(WORKOUTS) or []],
            "workout",
            WORKOUTS,
        )
        clients = _stage(data.get(CLIENTS) or [], "client", CLIENTS)
        profile = None
        if data.get("coachProfile") is not None:
            profile = _stage([data["coachProfile"]], "coachProfile", "coachProfile")[0]
        self.store.replace_all(workouts, clients, profile)
        logger.info(
            f"Imported backup with {len(workouts)} workouts and {len(clients)} clients"
        )
        return {
            "workouts": len(workouts),
            "clients": len(clients),
            "coachProfile": profile is not None,
        }

    def import_json(self, text: str) -> dict:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidFormatError(FORMAT_ERROR) from e
        return self.import_envelope(data)

    def stats(self) -> dict:
        last = None
        if self.settings is not None:
            last = self.settings.get_text("last_backup_date", "") or None
        return {
            "workouts": len(self.store.get_all(WORKOUTS)),
            "clients": len(self.store.get_all(CLIENTS)),
            "hasCoachProfile": self.store.coach_profile() is not None,
            "lastBackupDate": last,
        }
