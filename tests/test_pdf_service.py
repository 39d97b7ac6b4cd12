import base64
import datetime
import io
import os
import sys
import threading
import unittest

from loguru import logger
from PIL import Image

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import validate
from pdf_service import (
    GenerationCancelled,
    PDFGenerator,
    RenderedDocument,
    contact_line,
    plan_filename,
)


def png_data_url() -> str:
    buf = io.BytesIO()
    Image.new("RGBA", (4, 4), (255, 0, 0, 255)).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()


def make_workout(weeks: int = 1, days: int = 1, exercises: int = 1, **extra):
    data = {
        "coachName": "Sam",
        "clientName": "Alice",
        "workoutType": "Strength",
        "duration": 8,
        "weeks": [
            {
                "number": w + 1,
                "notes": f"Focus week {w + 1}",
                "days": [
                    {
                        "name": f"Day {d + 1}",
                        "notes": "Warm up well",
                        "exercises": [
                            {
                                "name": "Squat" if e == 0 else f"Accessory {e}",
                                "sets": "4",
                                "reps": "8",
                                "load": "100 kg",
                                "rest": "90s",
                                "notes": "Keep the chest up",
                                "order": e,
                            }
                            for e in range(exercises)
                        ],
                    }
                    for d in range(days)
                ],
            }
            for w in range(weeks)
        ],
    }
    data.update(extra)
    return validate(data, "workout")


def bare_workout(*exercise_counts: int):
    """One single-day week per count, without notes or description."""
    weeks = []
    for number, count in enumerate(exercise_counts, start=1):
        exercises = [
            {"name": f"Row {e + 1}", "sets": "3", "reps": "10", "order": e}
            for e in range(count)
        ]
        weeks.append({"number": number, "days": [{"name": "Day 1", "exercises": exercises}]})
    return validate(
        {
            "coachName": "Sam",
            "clientName": "Alice",
            "workoutType": "Strength",
            "duration": len(weeks),
            "weeks": weeks,
        },
        "workout",
    )


class PDFGeneratorTest(unittest.TestCase):
    def setUp(self) -> None:
        self.generator = PDFGenerator(compress=False)
        self.warnings = []
        self.sink = logger.add(self.warnings.append, level="WARNING")

    def tearDown(self) -> None:
        logger.remove(self.sink)

    def test_single_page_plan(self) -> None:
        workout = make_workout(description="Eight weeks of strength.")
        doc = self.generator.generate(workout, today=datetime.date(2024, 3, 5))
        self.assertIsInstance(doc, RenderedDocument)
        self.assertTrue(doc.content.startswith(b"%PDF"))
        self.assertEqual(doc.filename, "plan-alice.pdf")
        self.assertEqual(doc.page_count, 1)
        for text in (
            b"WORKOUT PLAN",
            b"WEEKLY PROGRESSION",
            b"WEEK 1",
            b"Squat",
            b"100 kg",
            b"Eight weeks of strength.",
            b"05/03/2024",
            b"Generated by Coach Planner",
        ):
            self.assertIn(text, doc.content)
        self.assertNotIn(b"DIETARY ADVICE", doc.content)

    def test_long_plan_paginates(self) -> None:
        workout = make_workout(weeks=8, days=3, exercises=5, dietaryAdvice="Eat well.")
        doc = self.generator.generate(workout)
        self.assertGreater(doc.page_count, 2)
        self.assertIn(b"WEEK 8", doc.content)
        self.assertIn(b"DIETARY ADVICE", doc.content)

    def test_long_day_continues_without_repeating_header(self) -> None:
        doc = self.generator.generate(bare_workout(25))
        self.assertEqual(doc.page_count, 1)

        doc = self.generator.generate(bare_workout(26))
        self.assertEqual(doc.page_count, 2)
        self.assertEqual(doc.content.count(b"EXERCISE"), 1)
        self.assertIn(b"Row 26", doc.content)

    def test_week_break_threshold(self) -> None:
        doc = self.generator.generate(bare_workout(11, 1))
        self.assertEqual(doc.page_count, 1)

        doc = self.generator.generate(bare_workout(13, 1))
        self.assertEqual(doc.page_count, 2)
        self.assertIn(b"WEEK 2", doc.content)

    def test_undecodable_images_are_skipped(self) -> None:
        workout = make_workout()
        workout.weeks[0].days[0].exercises[0].image_url = "data:image/png;base64,notanimage"
        profile = validate({"name": "Coach Sam", "logo": "aGVsbG8="}, "coachProfile")
        doc = self.generator.generate(workout, profile)
        self.assertIn(b"Squat", doc.content)
        self.assertIn(b"Coach: Coach Sam", doc.content)
        self.assertEqual(len(self.warnings), 2)
        self.assertIn("Could not add logo", str(self.warnings[0]))

    def test_valid_image_embedded(self) -> None:
        workout = make_workout()
        workout.weeks[0].days[0].exercises[0].image_url = png_data_url()
        doc = self.generator.generate(workout)
        self.assertIn(b"/Image", doc.content)
        self.assertEqual(self.warnings, [])

    def test_profile_footer_and_watermark(self) -> None:
        profile = validate(
            {
                "name": "Sam",
                "email": "sam@example.com",
                "instagram": "samlifts",
                "showWatermark": False,
            },
            "coachProfile",
        )
        doc = self.generator.generate(make_workout(), profile)
        self.assertIn(b"Email: sam@example.com", doc.content)
        self.assertIn(b"Instagram: @samlifts", doc.content)
        self.assertNotIn(b"Generated by", doc.content)

    def test_cancelled_render(self) -> None:
        cancel = threading.Event()
        cancel.set()
        with self.assertRaises(GenerationCancelled):
            self.generator.generate(make_workout(weeks=2), cancel=cancel)

    def test_compressed_output(self) -> None:
        doc = PDFGenerator().generate(make_workout())
        self.assertTrue(doc.content.startswith(b"%PDF"))
        self.assertNotIn(b"Squat", doc.content)


class HelperTest(unittest.TestCase):
    def test_plan_filename(self) -> None:
        self.assertEqual(plan_filename("Mary  Jane"), "plan-mary-jane.pdf")

    def test_contact_line(self) -> None:
        profile = validate(
            {"name": "Sam", "phone": "555", "website": "sam.fit"}, "coachProfile"
        )
        self.assertEqual(contact_line(profile), "Tel: 555 • Web: https://sam.fit")

    def test_suggested_path(self) -> None:
        doc = RenderedDocument(b"", "plan-alice.pdf", 1)
        self.assertEqual(doc.suggested_path(), "plan-alice.pdf")
        self.assertEqual(doc.suggested_path(" exports/ "), "exports/plan-alice.pdf")


if __name__ == "__main__":
    unittest.main()
