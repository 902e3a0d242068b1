"""Configuration models."""

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from staticreader.exceptions import ValidationError
from staticreader.incremental.state import DEFAULT_STATE_FILE
from staticreader.incremental.triggers import parse_triggers

StrategyName = Literal["time", "git"]

_M = TypeVar("_M", bound=BaseModel)


class Settings(BaseSettings):
    """Defaults loaded from environment variables or a .env file.

    All settings are prefixed with STATICREADER_ (e.g., STATICREADER_STATE_FILE).
    """

    model_config = SettingsConfigDict(
        env_prefix="STATICREADER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    state_file: Path = Field(
        default=Path(DEFAULT_STATE_FILE),
        description="State file used when an invocation does not name one",
    )
    strategy: StrategyName = Field(default="time", description="Default change detection strategy")

    # Logging
    log_level: str = "WARNING"
    log_json: bool = False


class IncrementalOptions(BaseModel):
    """Options of one incremental stream."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    key: str = Field(..., min_length=1, description="Identifies the stream inside the state file")
    file: Path = Field(default=Path(DEFAULT_STATE_FILE), description="State file path")
    strategy: StrategyName = Field(default="time", description="time or git")
    triggers: List[Any] = Field(default_factory=list, description="Trigger rules")
    tracking_root: Optional[Path] = Field(
        None, description="Scope of change detection; defaults to the working directory"
    )

    @field_validator("triggers", mode="before")
    @classmethod
    def _parse_triggers(cls, value: Any) -> List[Any]:
        return parse_triggers(value)


class ReaderOptions(BaseModel):
    """Options of a file reader."""

    model_config = ConfigDict(extra="forbid")

    cwd: Path = Field(default=Path("pages"), description="Directory to read from")
    pattern: Union[str, List[str]] = Field(default="**/*", description="Glob pattern(s)")
    ignore: Optional[Union[str, List[str]]] = Field(None, description="Glob pattern(s) to skip")
    encoding: str = Field(default="utf-8", description="Text encoding of the files")
    dot: bool = Field(default=False, description="Include dotfiles and dot directories")
    incremental: Union[bool, Dict[str, Any]] = Field(
        default=False, description="False, True, or incremental options without 'key' required"
    )

    @property
    def patterns(self) -> List[str]:
        return [self.pattern] if isinstance(self.pattern, str) else list(self.pattern)


def validate_options(model: Type[_M], data: Any, what: str) -> _M:
    """Validate `data` into `model`, reporting the first offending option.

    Raises:
        ValidationError: Naming the option that failed validation
    """
    if isinstance(data, model):
        return data
    if data is None:
        raise ValidationError(f"{what} expects an options object.")
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        error = e.errors()[0]
        location = [str(part) for part in error["loc"]]
        if not location:
            raise ValidationError(f"{what} expects an options object: {error['msg']}") from e
        option = location[0]
        raise ValidationError(
            f"{what} option '{'.'.join(location)}' is invalid: {error['msg']}",
            option=option,
        ) from e
