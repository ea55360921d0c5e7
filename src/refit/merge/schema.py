"""Schema for the user-editable config.json of a kit."""

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class TriggerPhrases(BaseModel):
    """Phrases that start, continue or upgrade a kit workflow."""

    model_config = ConfigDict(frozen=True, extra="allow")

    start: tuple[str, ...] = ()
    continue_: tuple[str, ...] = Field(default=(), alias="continue")
    upgrade: tuple[str, ...] = ()


class KitConfigSchema(BaseModel):
    """Validated view of config.json.

    Unknown keys are allowed so newer kits can add settings without a
    schema change here; only the keys refit itself relies on are checked.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    version: str
    schema_version: int | None = Field(default=None, alias="schemaVersion")
    trigger_phrases: TriggerPhrases | None = Field(default=None, alias="triggerPhrases")
    paths: dict[str, str] | None = None

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("schema_version")
    @classmethod
    def validate_schema_version(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError("must be a positive integer")
        return v


def _extract_pydantic_errors(exc: ValidationError) -> list[str]:
    errors: list[str] = []
    for error in exc.errors():
        loc = error.get("loc", ())
        msg = error.get("msg", "validation error")
        field_path = ".".join(str(part) for part in loc)
        if not field_path:
            errors.append(msg)
        elif error.get("type") == "missing":
            errors.append(f"Missing required field: {field_path}")
        else:
            errors.append(f"Field '{field_path}' {msg}")
    return errors


def validate_config_document(document: dict) -> list[str]:
    """Validate a config.json document, returning human-readable errors (empty if valid)."""
    try:
        KitConfigSchema.model_validate(document)
    except ValidationError as e:
        return _extract_pydantic_errors(e)
    return []
