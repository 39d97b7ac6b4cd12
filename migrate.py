import sys

from db import Database


def migrate(db_path: str = "plans.db") -> int:
    """Rewrite stored workouts to the current layout; return how many changed."""
    return Database(db_path).migrate_workouts()


if __name__ == "__main__":
    path = sys.argv[1] if len(sys.argv) > 1 else "plans.db"
    print(f"{migrate(path)} workouts migrated")
