from typing import Optional

from pydantic import BaseModel, ValidationError


class SettingsSchema(BaseModel):
    db_path: str = "plans.db"
    product_name: str = "Coach Planner"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    pdf_compression: bool = True
    export_dir: str = "."


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))


def load_settings(data: dict) -> SettingsSchema:
    """Return settings with defaults filled in, ignoring unknown keys."""
    validate_settings(data)
    known = {k: v for k, v in data.items() if k in SettingsSchema.model_fields}
    return SettingsSchema(**known)
