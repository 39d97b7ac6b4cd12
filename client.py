import requests
from typing import Optional


class PlannerClient:
    """Simple REST client for the coach planner API.

    ``session`` defaults to the ``requests`` module; any object exposing the
    same ``get``/``post``/``put``/``delete`` calls can be used instead.
    """

    def __init__(self, base_url: str = "http://localhost:8000", session=None) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def list_workouts(self, **params: str) -> list:
        resp = self.session.get(self._url("/workouts"), params=params)
        resp.raise_for_status()
        return resp.json()

    def get_workout(self, workout_id: str) -> dict:
        resp = self.session.get(self._url(f"/workouts/{workout_id}"))
        resp.raise_for_status()
        return resp.json()

    def create_workout(self, **fields) -> dict:
        resp = self.session.post(self._url("/workouts"), json=fields)
        resp.raise_for_status()
        return resp.json()

    def update_workout(self, workout_id: str, **fields) -> dict:
        resp = self.session.put(self._url(f"/workouts/{workout_id}"), json=fields)
        resp.raise_for_status()
        return resp.json()

    def delete_workout(self, workout_id: str) -> None:
        resp = self.session.delete(self._url(f"/workouts/{workout_id}"))
        resp.raise_for_status()

    def duplicate_workout(self, workout_id: str) -> dict:
        resp = self.session.post(self._url(f"/workouts/{workout_id}/duplicate"))
        resp.raise_for_status()
        return resp.json()

    def add_week(self, workout_id: str) -> dict:
        resp = self.session.post(self._url(f"/workouts/{workout_id}/weeks"))
        resp.raise_for_status()
        return resp.json()

    def add_day(self, workout_id: str, week_id: str) -> dict:
        resp = self.session.post(
            self._url(f"/workouts/{workout_id}/weeks/{week_id}/days")
        )
        resp.raise_for_status()
        return resp.json()

    def add_exercise(self, workout_id: str, week_id: str, day_id: str, **fields) -> dict:
        resp = self.session.post(
            self._url(f"/workouts/{workout_id}/weeks/{week_id}/days/{day_id}/exercises"),
            json=fields,
        )
        resp.raise_for_status()
        return resp.json()

    def download_pdf(self, workout_id: str, path: Optional[str] = None) -> bytes:
        resp = self.session.get(self._url(f"/workouts/{workout_id}/pdf"))
        resp.raise_for_status()
        if path:
            with open(path, "wb") as f:
                f.write(resp.content)
        return resp.content

    def create_client(self, **fields) -> dict:
        resp = self.session.post(self._url("/clients"), json=fields)
        resp.raise_for_status()
        return resp.json()

    def list_clients(self) -> list:
        resp = self.session.get(self._url("/clients"))
        resp.raise_for_status()
        return resp.json()

    def save_coach_profile(self, **fields) -> dict:
        resp = self.session.post(self._url("/coach-profile"), json=fields)
        resp.raise_for_status()
        return resp.json()

    def export_backup(self) -> dict:
        resp = self.session.get(self._url("/backup"))
        resp.raise_for_status()
        return resp.json()

    def import_backup(self, envelope: dict) -> dict:
        resp = self.session.post(self._url("/backup"), json=envelope)
        resp.raise_for_status()
        return resp.json()
