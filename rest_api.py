import datetime
import urllib.parse
from contextlib import contextmanager
from typing import Any, Optional

from fastapi import APIRouter, Body, FastAPI, HTTPException, Response
from loguru import logger

from backup import BackupManager
from db import CLIENTS, COACH_PROFILE, WORKOUTS, LocalStore, SettingsRepository
from errors import InvalidFormatError, NotFoundError, ValidationError
from pdf_service import PDFGenerator
from plan_editor import PlanEditor


def attachment_header(filename: str) -> str:
    """Content-Disposition value safe for non-Latin-1 filenames."""
    fallback = filename.encode("ascii", "replace").decode("ascii")
    fallback = fallback.replace("?", "_").replace('"', "_")
    quoted = urllib.parse.quote(filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quoted}"


def _week_day(editor: PlanEditor, workout, week_id: str, day_id: str):
    week = editor.find_week(workout, week_id)
    for day in week.days:
        if day.id == day_id:
            return day
    raise NotFoundError(f"day {day_id} not found in week {week_id}")


class CoachAPI:
    """Provides REST endpoints for workout plans, clients and backups."""

    def __init__(
        self, db_path: str = "plans.db", yaml_path: str = "settings.yaml"
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.store = LocalStore(db_path)
        self.backups = BackupManager(self.store, self.settings)
        app_settings = self.settings.app_settings()
        self.pdf = PDFGenerator(
            product_name=app_settings.product_name,
            compress=app_settings.pdf_compression,
        )
        self.app = FastAPI(title=app_settings.product_name)
        self._setup_routes()

    @contextmanager
    def _errors(self):
        """Translate domain errors into HTTP responses."""
        try:
            yield
        except HTTPException:
            raise
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=e.message)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except InvalidFormatError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception:
            logger.exception("Unexpected failure while handling request")
            raise HTTPException(status_code=500, detail="unexpected error")

    def _get(self, table: str, record_id: str):
        record = self.store.get_by_id(table, record_id)
        if record is None:
            raise NotFoundError(f"{table} {record_id} not found")
        return record

    def _delete(self, table: str, record_id: str) -> Response:
        with self._errors():
            if not self.store.delete(table, record_id):
                raise NotFoundError(f"{table} {record_id} not found")
        return Response(status_code=204)

    def _edit(self, workout_id: str, action) -> dict:
        """Apply ``action(editor, workout)`` and persist the edited workout."""
        with self._errors():
            with PlanEditor(self.store) as editor:
                workout = editor.open(workout_id)
                action(editor, workout)
            return self._get(WORKOUTS, workout_id).to_dict()

    def record_pdf_export(self) -> int:
        count = self.settings.get_int("exported_pdfs", 0) + 1
        self.settings.set_int("exported_pdfs", count)
        return count

    def _setup_routes(self) -> None:
        workouts_router = APIRouter(prefix="/workouts", tags=["Workouts"])
        clients_router = APIRouter(prefix="/clients", tags=["Clients"])
        profile_router = APIRouter(prefix="/coach-profile", tags=["Coach Profile"])
        backup_router = APIRouter(prefix="/backup", tags=["Backup"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.store.coach_profile()
                return {"status": "ok"}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @workouts_router.get("")
        def list_workouts(
            search: Optional[str] = None,
            workout_type: Optional[str] = None,
            client_name: Optional[str] = None,
        ):
            with self._errors():
                if client_name:
                    workouts = self.store.workouts_by_client(client_name)
                elif search or workout_type:
                    workouts = self.store.search_workouts(search, workout_type)
                else:
                    workouts = self.store.get_all(WORKOUTS)
                return [w.to_dict() for w in workouts]

        @workouts_router.get("/{workout_id}")
        def get_workout(workout_id: str):
            with self._errors():
                return self._get(WORKOUTS, workout_id).to_dict()

        @workouts_router.post("", status_code=201)
        def create_workout(data: dict = Body(...)):
            with self._errors():
                return self.store.create(WORKOUTS, data).to_dict()

        @workouts_router.put("/{workout_id}")
        def update_workout(workout_id: str, data: dict = Body(...)):
            with self._errors():
                return self.store.update(WORKOUTS, workout_id, data).to_dict()

        @workouts_router.delete("/{workout_id}", status_code=204)
        def delete_workout(workout_id: str):
            return self._delete(WORKOUTS, workout_id)

        @workouts_router.post("/{workout_id}/duplicate", status_code=201)
        def duplicate_workout(workout_id: str):
            with self._errors():
                source = self._get(WORKOUTS, workout_id)
                return PlanEditor(self.store).duplicate_workout(source).to_dict()

        @workouts_router.get("/{workout_id}/pdf")
        def export_pdf(workout_id: str):
            with self._errors():
                workout = self._get(WORKOUTS, workout_id)
                doc = self.pdf.generate(workout, self.store.coach_profile())
                self.record_pdf_export()
                return Response(
                    content=doc.content,
                    media_type=doc.media_type,
                    headers={"Content-Disposition": attachment_header(doc.filename)},
                )

        @workouts_router.post("/{workout_id}/weeks", status_code=201)
        def add_week(workout_id: str):
            return self._edit(workout_id, lambda ed, w: ed.add_week(w))

        @workouts_router.delete("/{workout_id}/weeks/{week_id}")
        def remove_week(workout_id: str, week_id: str):
            return self._edit(workout_id, lambda ed, w: ed.remove_week(w, week_id))

        @workouts_router.post("/{workout_id}/weeks/{week_id}/days", status_code=201)
        def add_day(workout_id: str, week_id: str):
            return self._edit(
                workout_id, lambda ed, w: ed.add_day(ed.find_week(w, week_id))
            )

        @workouts_router.delete("/{workout_id}/weeks/{week_id}/days/{day_id}")
        def remove_day(workout_id: str, week_id: str, day_id: str):
            return self._edit(
                workout_id,
                lambda ed, w: ed.remove_day(ed.find_week(w, week_id), day_id),
            )

        @workouts_router.post(
            "/{workout_id}/weeks/{week_id}/days/{day_id}/exercises",
            status_code=201,
        )
        def add_exercise(
            workout_id: str, week_id: str, day_id: str, data: dict = Body(...)
        ):
            def action(editor, workout):
                editor.add_exercise(_week_day(editor, workout, week_id, day_id), **data)

            return self._edit(workout_id, action)

        @workouts_router.delete(
            "/{workout_id}/weeks/{week_id}/days/{day_id}/exercises/{exercise_id}"
        )
        def remove_exercise(
            workout_id: str, week_id: str, day_id: str, exercise_id: str
        ):
            def action(editor, workout):
                day = _week_day(editor, workout, week_id, day_id)
                editor.remove_exercise(day, exercise_id)

            return self._edit(workout_id, action)

        @clients_router.get("")
        def list_clients(name: Optional[str] = None):
            with self._errors():
                if name:
                    client = self.store.client_by_name(name)
                    return [client.to_dict()] if client else []
                return [c.to_dict() for c in self.store.get_all(CLIENTS)]

        @clients_router.get("/{client_id}")
        def get_client(client_id: str):
            with self._errors():
                return self._get(CLIENTS, client_id).to_dict()

        @clients_router.post("", status_code=201)
        def create_client(data: dict = Body(...)):
            with self._errors():
                return self.store.create(CLIENTS, data).to_dict()

        @clients_router.put("/{client_id}")
        def update_client(client_id: str, data: dict = Body(...)):
            with self._errors():
                return self.store.update(CLIENTS, client_id, data).to_dict()

        @clients_router.delete("/{client_id}", status_code=204)
        def delete_client(client_id: str):
            return self._delete(CLIENTS, client_id)

        @profile_router.get("")
        def get_current_profile():
            with self._errors():
                profile = self.store.coach_profile()
                if profile is None:
                    raise NotFoundError("coach profile not found")
                return profile.to_dict()

        @profile_router.get("/{profile_id}")
        def get_profile(profile_id: str):
            with self._errors():
                return self._get(COACH_PROFILE, profile_id).to_dict()

        @profile_router.post("", status_code=201)
        def save_profile(data: dict = Body(...)):
            with self._errors():
                return self.store.create(COACH_PROFILE, data).to_dict()

        @profile_router.put("/{profile_id}")
        def update_profile(profile_id: str, data: dict = Body(...)):
            with self._errors():
                return self.store.update(COACH_PROFILE, profile_id, data).to_dict()

        @profile_router.delete("/{profile_id}", status_code=204)
        def delete_profile(profile_id: str):
            return self._delete(COACH_PROFILE, profile_id)

        @backup_router.get("")
        def export_backup():
            with self._errors():
                data = self.backups.export_json()
                filename = self.backups.backup_filename(datetime.date.today())
                return Response(
                    content=data,
                    media_type="application/json",
                    headers={"Content-Disposition": attachment_header(filename)},
                )

        @backup_router.post("")
        def import_backup(data: Any = Body(...)):
            with self._errors():
                return self.backups.import_envelope(data)

        @backup_router.get("/stats")
        def backup_stats():
            with self._errors():
                stats = self.backups.stats()
                stats["exportedPDFs"] = self.settings.get_int("exported_pdfs", 0)
                return stats

        self.app.include_router(workouts_router)
        self.app.include_router(clients_router)
        self.app.include_router(profile_router)
        self.app.include_router(backup_router)


api = CoachAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
