from __future__ import annotations

import datetime
import uuid
from typing import Annotated, List, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    validate_email,
)
from pydantic.alias_generators import to_camel

from errors import ValidationError

WORKOUT_TYPES = (
    "Strength",
    "Mass",
    "Cutting",
    "Endurance",
    "Rehabilitation",
    "Functional",
)

DEFAULT_LINE_COLOR = "#000000"


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _check_email(value: Optional[str]) -> Optional[str]:
    if value:
        validate_email(value)
    return value


EmailField = Annotated[Optional[str], AfterValidator(_check_email)]


def resolve_field(model_cls, key: str) -> Optional[str]:
    """Map a snake_case name or camelCase alias to the model attribute name."""
    if key in model_cls.model_fields:
        return key
    for name, info in model_cls.model_fields.items():
        if info.alias == key:
            return name
    return None


def to_wire_keys(model_cls, data: dict) -> dict:
    """Rename the top-level keys of ``data`` to the model's camelCase aliases."""
    result = {}
    for key, value in data.items():
        name = resolve_field(model_cls, key)
        if name is None:
            result[key] = value
        else:
            result[model_cls.model_fields[name].alias or name] = value
    return result


class Entity(BaseModel):
    """Base for all records; serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_dict(self) -> dict:
        """Return a JSON-ready dict using the wire (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Exercise(Entity):
    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    sets: str = Field(min_length=1)
    reps: str = Field(min_length=1)
    load: Optional[str] = None
    rest: Optional[str] = None
    notes: Optional[str] = None
    image_url: Optional[str] = None
    order: int = 0

    @classmethod
    def draft(cls, order: int = 0, **fields) -> "Exercise":
        """Build an unvalidated exercise with empty prescription fields."""
        values = dict(name="", sets="", reps="", load="", rest="", notes="", image_url=None)
        for key, value in fields.items():
            name = resolve_field(cls, key)
            if name is None or name in ("id", "order"):
                raise ValidationError([(key, "unknown exercise field")])
            values[name] = value
        return cls.model_construct(id=new_id(), order=order, **values)


class Day(Entity):
    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    exercises: List[Exercise] = Field(default_factory=list)
    notes: Optional[str] = None

    @classmethod
    def draft(cls, name: str) -> "Day":
        return cls.model_construct(id=new_id(), name=name, exercises=[], notes="")


class Week(Entity):
    id: str = Field(default_factory=new_id)
    number: int = Field(ge=1)
    days: List[Day] = Field(default_factory=list)
    notes: Optional[str] = None

    @classmethod
    def draft(cls, number: int) -> "Week":
        return cls.model_construct(
            id=new_id(), number=number, days=[Day.draft("Day 1")], notes=""
        )


class Workout(Entity):
    id: str = Field(default_factory=new_id)
    name: Optional[str] = None
    coach_name: str = Field(min_length=1)
    client_name: str = Field(min_length=1)
    client_id: Optional[str] = None
    workout_type: str = Field(min_length=1)
    duration: int = Field(ge=1)
    description: Optional[str] = None
    dietary_advice: Optional[str] = None
    weeks: List[Week] = Field(default_factory=list)
    created_at: datetime.datetime = Field(default_factory=utcnow)
    updated_at: datetime.datetime = Field(default_factory=utcnow)

    @field_validator("workout_type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        if value and value not in WORKOUT_TYPES:
            raise ValueError(f"must be one of: {', '.join(WORKOUT_TYPES)}")
        return value

    @property
    def display_name(self) -> str:
        return self.name or f"Plan for {self.client_name}"


class Client(Entity):
    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    email: EmailField = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime.datetime = Field(default_factory=utcnow)


class CoachProfile(Entity):
    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    email: EmailField = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    logo: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    website: Optional[str] = None
    export_path: Optional[str] = None
    pdf_line_color: str = Field(default=DEFAULT_LINE_COLOR, pattern=r"^#[0-9a-fA-F]{6}$")
    show_watermark: bool = True

    @field_validator("pdf_line_color", mode="before")
    @classmethod
    def _default_line_color(cls, value):
        return DEFAULT_LINE_COLOR if value is None else value

    @field_validator("show_watermark", mode="before")
    @classmethod
    def _default_watermark(cls, value):
        return True if value is None else value


ENTITY_KINDS = {
    "exercise": Exercise,
    "day": Day,
    "week": Week,
    "workout": Workout,
    "client": Client,
    "coachProfile": CoachProfile,
}


def field_errors(exc: PydanticValidationError) -> list[tuple[str, str]]:
    """Flatten pydantic errors into ``(dotted.path, reason)`` pairs."""
    result = []
    for err in exc.errors():
        path = ".".join(str(p) for p in err["loc"]) or "__root__"
        result.append((path, err["msg"]))
    return result


def validate(candidate, kind: str) -> Entity:
    """Validate ``candidate`` as an entity of ``kind``.

    ``candidate`` may be a mapping or an existing (possibly draft) model.
    Every failing field is reported in the raised ``ValidationError``.
    """
    try:
        model_cls = ENTITY_KINDS[kind]
    except KeyError:
        raise ValueError(f"unknown entity kind: {kind}")
    if isinstance(candidate, Entity):
        candidate = candidate.model_dump(by_alias=True)
    if not isinstance(candidate, dict):
        raise ValidationError([("__root__", f"{kind} must be an object")])
    try:
        return model_cls.model_validate(candidate)
    except PydanticValidationError as e:
        raise ValidationError(field_errors(e)) from e
