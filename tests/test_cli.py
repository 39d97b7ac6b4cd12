import json
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import cli
from db import CLIENTS, COACH_PROFILE, WORKOUTS, LocalStore


class TestCLI:
    def _args(self, tmp_path, *args):
        return [*args, "--db", str(tmp_path / "cli.db"), "--yaml", str(tmp_path / "cli.yaml")]

    def test_demo_then_export_pdf(self, tmp_path, capsys):
        cli.main(self._args(tmp_path, "demo"))
        store = LocalStore(str(tmp_path / "cli.db"))
        workouts = store.get_all(WORKOUTS)
        assert len(workouts) == 1
        assert [w.number for w in workouts[0].weeks] == [1, 2, 3, 4]
        assert store.coach_profile().name == "Sam Rivera"
        assert len(store.get_all(CLIENTS)) == 1
        capsys.readouterr()

        cli.main(
            self._args(
                tmp_path, "export-pdf", "--workout", workouts[0].id, "--out", str(tmp_path)
            )
        )
        out_path = capsys.readouterr().out.strip()
        assert out_path.endswith("plan-alice.pdf")
        with open(out_path, "rb") as f:
            assert f.read().startswith(b"%PDF")

    def test_demo_skips_populated_database(self, tmp_path, capsys):
        cli.main(self._args(tmp_path, "demo"))
        cli.main(self._args(tmp_path, "demo"))
        assert "already contains" in capsys.readouterr().out
        assert len(LocalStore(str(tmp_path / "cli.db")).get_all(WORKOUTS)) == 1

    def test_backup_and_restore(self, tmp_path):
        cli.main(self._args(tmp_path, "demo"))
        backup_file = tmp_path / "backup.json"
        cli.main(self._args(tmp_path, "backup", "--out", str(backup_file)))
        data = json.loads(backup_file.read_text(encoding="utf-8"))
        assert len(data["workouts"]) == 1
        assert data["coachProfile"]["name"] == "Sam Rivera"

        target = tmp_path / "restored.db"
        cli.main(
            ["restore", "--in", str(backup_file), "--db", str(target), "--yaml", str(tmp_path / "cli.yaml")]
        )
        store = LocalStore(str(target))
        assert len(store.get_all(WORKOUTS)) == 1
        assert store.get_all(COACH_PROFILE)[0].name == "Sam Rivera"

    def test_migrate(self, tmp_path, capsys):
        cli.main(self._args(tmp_path, "migrate"))
        assert "0 workouts migrated" in capsys.readouterr().out

    def test_export_unknown_workout(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(self._args(tmp_path, "export-pdf", "--workout", "missing"))
        assert exc.value.code == 2
        err = capsys.readouterr().err
        assert "workout missing not found" in err
        assert "Traceback" not in err

    def test_restore_invalid_backup(self, tmp_path, capsys):
        backup_file = tmp_path / "bad.json"
        backup_file.write_text("[]", encoding="utf-8")
        with pytest.raises(SystemExit):
            cli.main(self._args(tmp_path, "restore", "--in", str(backup_file)))
        assert "backup format invalid" in capsys.readouterr().err
