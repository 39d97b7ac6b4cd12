import os
import sys
import unittest

from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import PlannerClient
from rest_api import CoachAPI


class ClientTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_client.db"
        self.yaml_path = "test_client.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.api = CoachAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.client = PlannerClient(
            base_url="http://testserver", session=TestClient(self.api.app)
        )

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def test_build_plan_and_download(self) -> None:
        self.client.create_client(name="Alice")
        workout = self.client.create_workout(
            coachName="Sam", clientName="Alice", workoutType="Strength", duration=8
        )
        week = self.client.add_week(workout["id"])["weeks"][0]
        day = self.client.add_day(workout["id"], week["id"])["weeks"][0]["days"][1]
        self.assertEqual(day["name"], "Day 2")
        plan = self.client.add_exercise(
            workout["id"], week["id"], day["id"], name="Squat", sets="4", reps="8"
        )
        self.assertEqual(plan["weeks"][0]["days"][1]["exercises"][0]["name"], "Squat")
        pdf = self.client.download_pdf(workout["id"])
        self.assertTrue(pdf.startswith(b"%PDF"))
        self.assertEqual(len(self.client.list_workouts(search="alice")), 1)

    def test_backup_round_trip(self) -> None:
        self.client.save_coach_profile(name="Sam")
        workout = self.client.create_workout(
            coachName="Sam", clientName="Bob", workoutType="Mass", duration=4
        )
        self.client.duplicate_workout(workout["id"])
        envelope = self.client.export_backup()
        self.client.delete_workout(workout["id"])
        summary = self.client.import_backup(envelope)
        self.assertEqual(summary["workouts"], 2)
        self.assertEqual(self.client.get_workout(workout["id"])["clientName"], "Bob")

    def test_errors_raise(self) -> None:
        with self.assertRaises(Exception):
            self.client.get_workout("missing")


if __name__ == "__main__":
    unittest.main()
