import argparse
import datetime
import os
from typing import Optional

from backup import BackupManager
from config import YamlConfig
from db import CLIENTS, COACH_PROFILE, WORKOUTS, LocalStore, SettingsRepository
from errors import InvalidFormatError, NotFoundError, ValidationError
from log_config import setup_logger
from migrate import migrate
from pdf_service import PDFGenerator
from plan_editor import PlanEditor
from settings_schema import load_settings


def export_pdf(
    db_path: str,
    yaml_path: str,
    workout_id: str,
    output_dir: Optional[str] = None,
) -> str:
    """Render a workout to ``output_dir`` and return the written path."""
    settings = SettingsRepository(db_path, yaml_path)
    app_settings = settings.app_settings()
    store = LocalStore(db_path)
    workout = store.get_by_id(WORKOUTS, workout_id)
    if workout is None:
        raise NotFoundError(f"workout {workout_id} not found")
    generator = PDFGenerator(
        product_name=app_settings.product_name,
        compress=app_settings.pdf_compression,
    )
    doc = generator.generate(workout, store.coach_profile())
    out_path = os.path.join(output_dir or app_settings.export_dir, doc.filename)
    with open(out_path, "wb") as f:
        f.write(doc.content)
    settings.set_int("exported_pdfs", settings.get_int("exported_pdfs", 0) + 1)
    return out_path


def backup_store(db_path: str, yaml_path: str, out_path: Optional[str] = None) -> str:
    manager = BackupManager(LocalStore(db_path), SettingsRepository(db_path, yaml_path))
    out_path = out_path or manager.backup_filename(datetime.date.today())
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(manager.export_json())
    return out_path


def restore_store(backup_path: str, db_path: str) -> dict:
    with open(backup_path, "r", encoding="utf-8") as f:
        text = f.read()
    return BackupManager(LocalStore(db_path)).import_json(text)


def demo_data(db_path: str) -> None:
    """Populate the database with a demo client and plan if empty."""
    store = LocalStore(db_path)
    if store.get_all(WORKOUTS):
        print("Database already contains workouts")
        return
    store.create(COACH_PROFILE, {"name": "Sam Rivera", "email": "sam@example.com"})
    client = store.create(CLIENTS, {"name": "Alice", "notes": "Demo client"})
    workout = store.create(
        WORKOUTS,
        {
            "coachName": "Sam Rivera",
            "clientName": client.name,
            "clientId": client.id,
            "workoutType": "Strength",
            "duration": 4,
            "description": "Four week linear progression.",
        },
    )
    with PlanEditor(store) as editor:
        workout = editor.track(workout)
        for number in range(1, 5):
            week = editor.add_week(workout)
            day = week.days[0]
            editor.add_exercise(
                day, name="Squat", sets="4", reps="8", load=f"{60 + 5 * number} kg", rest="120s"
            )
            editor.add_exercise(day, name="Bench Press", sets="4", reps="8", rest="90s")
    print("Demo data inserted")


def serve(db_path: str, yaml_path: str, host: str, port: int) -> None:
    import uvicorn

    from rest_api import CoachAPI

    uvicorn.run(CoachAPI(db_path, yaml_path).app, host=host, port=port)


def main(argv: Optional[list] = None) -> None:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--db", default=None)
    common.add_argument("--yaml", default="settings.yaml")

    parser = argparse.ArgumentParser(description="Coach planner commands")
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export-pdf", parents=[common])
    exp.add_argument("--workout", required=True)
    exp.add_argument("--out", default=None)

    bkp = sub.add_parser("backup", parents=[common])
    bkp.add_argument("--out", default=None)

    rst = sub.add_parser("restore", parents=[common])
    rst.add_argument("--in", dest="src", required=True)

    sub.add_parser("migrate", parents=[common])
    sub.add_parser("demo", parents=[common])

    srv = sub.add_parser("serve", parents=[common])
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)

    app_settings = load_settings(YamlConfig(args.yaml).load())
    db_path = args.db or app_settings.db_path
    setup_logger(app_settings.log_level, app_settings.log_file)

    try:
        if args.cmd == "export-pdf":
            print(export_pdf(db_path, args.yaml, args.workout, args.out))
        elif args.cmd == "backup":
            print(backup_store(db_path, args.yaml, args.out))
        elif args.cmd == "restore":
            summary = restore_store(args.src, db_path)
            print(f"Restored {summary['workouts']} workouts and {summary['clients']} clients")
        elif args.cmd == "migrate":
            print(f"{migrate(db_path)} workouts migrated")
        elif args.cmd == "demo":
            demo_data(db_path)
        elif args.cmd == "serve":
            serve(db_path, args.yaml, args.host, args.port)
    except (NotFoundError, InvalidFormatError, ValidationError) as e:
        parser.error(str(e))


if __name__ == "__main__":
    main()
