import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from errors import ValidationError
from models import (
    DEFAULT_LINE_COLOR,
    CoachProfile,
    Exercise,
    Week,
    Workout,
    resolve_field,
    to_wire_keys,
    validate,
)


class ModelValidationTest(unittest.TestCase):
    def test_workout_reports_every_missing_field(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate({}, "workout")
        fields = {field for field, _ in ctx.exception.errors}
        self.assertTrue(
            {"coachName", "clientName", "workoutType", "duration"} <= fields
        )
        self.assertIn("coachName", ctx.exception.message)

    def test_duration_must_be_positive(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate(
                {
                    "coachName": "Sam",
                    "clientName": "Alice",
                    "workoutType": "Strength",
                    "duration": 0,
                },
                "workout",
            )
        self.assertEqual([f for f, _ in ctx.exception.errors], ["duration"])

    def test_unknown_workout_type_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            validate(
                {
                    "coachName": "Sam",
                    "clientName": "Alice",
                    "workoutType": "Yoga",
                    "duration": 4,
                },
                "workout",
            )

    def test_snake_case_keys_accepted(self) -> None:
        workout = validate(
            {
                "coach_name": "Sam",
                "client_name": "Alice",
                "workout_type": "Mass",
                "duration": 6,
            },
            "workout",
        )
        self.assertEqual(workout.client_name, "Alice")
        self.assertEqual(workout.display_name, "Plan for Alice")
        data = workout.to_dict()
        self.assertIn("clientName", data)
        self.assertNotIn("name", data)

    def test_client_email_checked_when_present(self) -> None:
        self.assertIsNone(validate({"name": "Alice"}, "client").email)
        self.assertEqual(validate({"name": "Alice", "email": ""}, "client").email, "")
        with self.assertRaises(ValidationError) as ctx:
            validate({"name": "Alice", "email": "not-an-email"}, "client")
        self.assertEqual(ctx.exception.errors[0][0], "email")

    def test_non_object_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            validate(["Alice"], "client")

    def test_unknown_kind(self) -> None:
        with self.assertRaises(ValueError):
            validate({}, "planet")

    def test_coach_profile_defaults(self) -> None:
        profile = validate(
            {"name": "Sam", "pdfLineColor": None, "showWatermark": None}, "coachProfile"
        )
        self.assertEqual(profile.pdf_line_color, DEFAULT_LINE_COLOR)
        self.assertTrue(profile.show_watermark)
        with self.assertRaises(ValidationError):
            validate({"name": "Sam", "pdfLineColor": "red"}, "coachProfile")
        profile = validate({"name": "Sam", "pdfLineColor": "#4f46E5"}, "coachProfile")
        self.assertIsInstance(profile, CoachProfile)


class DraftTest(unittest.TestCase):
    def test_exercise_draft_is_unvalidated(self) -> None:
        draft = Exercise.draft(order=2)
        self.assertEqual(draft.name, "")
        self.assertEqual(draft.order, 2)
        with self.assertRaises(ValidationError):
            validate(draft, "exercise")

    def test_exercise_draft_fields(self) -> None:
        draft = Exercise.draft(name="Squat", sets="4", reps="8", imageUrl="data:x")
        self.assertEqual(draft.image_url, "data:x")
        self.assertEqual(validate(draft, "exercise").name, "Squat")

    def test_exercise_draft_rejects_unknown_field(self) -> None:
        with self.assertRaises(ValidationError):
            Exercise.draft(colour="red")
        with self.assertRaises(ValidationError):
            Exercise.draft(id="abc")

    def test_week_draft_has_one_day(self) -> None:
        week = Week.draft(3)
        self.assertEqual(week.number, 3)
        self.assertEqual([d.name for d in week.days], ["Day 1"])
        self.assertEqual(week.days[0].exercises, [])


class FieldNameTest(unittest.TestCase):
    def test_resolve_field(self) -> None:
        self.assertEqual(resolve_field(Workout, "clientName"), "client_name")
        self.assertEqual(resolve_field(Workout, "client_name"), "client_name")
        self.assertIsNone(resolve_field(Workout, "nope"))

    def test_to_wire_keys(self) -> None:
        self.assertEqual(
            to_wire_keys(Workout, {"dietary_advice": "x", "extra": 1}),
            {"dietaryAdvice": "x", "extra": 1},
        )


if __name__ == "__main__":
    unittest.main()
