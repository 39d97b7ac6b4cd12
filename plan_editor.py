from __future__ import annotations

import json
from typing import Dict, List, Tuple

from loguru import logger

from db import WORKOUTS, LocalStore
from errors import NotFoundError, ValidationError
from models import Day, Entity, Exercise, Week, Workout, new_id, resolve_field

COPY_SUFFIX = " (Copy)"


def _index_of(items: list, item_id: str, kind: str) -> int:
    for idx, item in enumerate(items):
        if item.id == item_id:
            return idx
    raise NotFoundError(f"{kind} {item_id} not found")


class PlanEditor:
    """Structural edits over a workout's Week -> Day -> Exercise tree.

    Edits are applied in memory. Workouts obtained through ``open`` or
    ``track`` are written back by ``flush``; used as a context manager the
    editor flushes on normal exit.
    """

    def __init__(self, store: LocalStore) -> None:
        self.store = store
        self._tracked: Dict[str, Tuple[Workout, str]] = {}

    def __enter__(self) -> "PlanEditor":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.flush()
        return False

    @staticmethod
    def _snapshot(workout: Workout) -> str:
        return json.dumps(workout.model_dump(mode="json", by_alias=True), sort_keys=True)

    def open(self, workout_id: str) -> Workout:
        workout = self.store.get_by_id(WORKOUTS, workout_id)
        if workout is None:
            raise NotFoundError(f"workout {workout_id} not found")
        return self.track(workout)

    def track(self, workout: Workout) -> Workout:
        self._tracked[workout.id] = (workout, self._snapshot(workout))
        return workout

    def is_dirty(self, workout: Workout) -> bool:
        entry = self._tracked.get(workout.id)
        return entry is not None and entry[1] != self._snapshot(workout)

    def flush(self) -> List[Workout]:
        """Persist every tracked workout that changed since it was loaded.

        A workout failing validation stays dirty and the error propagates.
        """
        saved = []
        for workout_id, (workout, snapshot) in list(self._tracked.items()):
            if self._snapshot(workout) == snapshot:
                continue
            fields = workout.model_dump(by_alias=True)
            for key in ("id", "createdAt", "updatedAt"):
                fields.pop(key, None)
            stored = self.store.update(WORKOUTS, workout_id, fields)
            workout.updated_at = stored.updated_at
            self._tracked[workout_id] = (workout, self._snapshot(workout))
            saved.append(stored)
        if saved:
            logger.debug(f"Flushed {len(saved)} workout(s)")
        return saved

    def add_week(self, workout: Workout) -> Week:
        week = Week.draft(len(workout.weeks) + 1)
        workout.weeks.append(week)
        return week

    def remove_week(self, workout: Workout, week_id: str) -> None:
        del workout.weeks[_index_of(workout.weeks, week_id, "week")]
        for number, week in enumerate(workout.weeks, start=1):
            week.number = number

    def add_day(self, week: Week) -> Day:
        day = Day.draft(f"Day {len(week.days) + 1}")
        week.days.append(day)
        return day

    def remove_day(self, week: Week, day_id: str) -> None:
        del week.days[_index_of(week.days, day_id, "day")]

    def add_exercise(self, day: Day, **fields) -> Exercise:
        exercise = Exercise.draft(order=len(day.exercises), **fields)
        day.exercises.append(exercise)
        return exercise

    def remove_exercise(self, day: Day, exercise_id: str) -> None:
        del day.exercises[_index_of(day.exercises, exercise_id, "exercise")]

    def move_exercise(self, day: Day, exercise_id: str, new_index: int) -> None:
        """Move an exercise within its day and rewrite the order hints."""
        exercise = day.exercises.pop(_index_of(day.exercises, exercise_id, "exercise"))
        new_index = max(0, min(new_index, len(day.exercises)))
        day.exercises.insert(new_index, exercise)
        for order, item in enumerate(day.exercises):
            item.order = order

    def update_field(self, entity: Entity, field_name: str, value) -> Entity:
        name = resolve_field(type(entity), field_name)
        if name is None or name == "id":
            raise ValidationError([(field_name, "unknown or read-only field")])
        setattr(entity, name, value)
        return entity

    def find_week(self, workout: Workout, week_id: str) -> Week:
        return workout.weeks[_index_of(workout.weeks, week_id, "week")]

    def find_day(self, workout: Workout, day_id: str) -> Day:
        for week in workout.weeks:
            for day in week.days:
                if day.id == day_id:
                    return day
        raise NotFoundError(f"day {day_id} not found")

    def find_exercise(self, workout: Workout, exercise_id: str) -> Exercise:
        for week in workout.weeks:
            for day in week.days:
                for exercise in day.exercises:
                    if exercise.id == exercise_id:
                        return exercise
        raise NotFoundError(f"exercise {exercise_id} not found")

    def duplicate_workout(self, workout: Workout) -> Workout:
        """Persist a deep copy of ``workout`` with fresh ids at every level."""
        data = workout.model_dump(by_alias=True)
        for key in ("id", "createdAt", "updatedAt"):
            data.pop(key, None)
        data["clientName"] = f"{workout.client_name}{COPY_SUFFIX}"
        for week in data["weeks"]:
            week["id"] = new_id()
            for day in week["days"]:
                day["id"] = new_id()
                for exercise in day["exercises"]:
                    exercise["id"] = new_id()
        return self.store.create(WORKOUTS, data)
