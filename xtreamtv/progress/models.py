"""Watch progress record schema"""

import math
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

ContentKind = Literal["movie", "series"]


class ProgressRecord(BaseModel):
    """Playback position for one movie or series episode."""

    model_config = ConfigDict(frozen=True, strict=True)

    type: ContentKind
    id: str = Field(min_length=1)
    position: float = Field(ge=0)
    duration: float = Field(ge=0)
    timestamp: float = Field(ge=0)

    @field_validator("position", "duration", "timestamp", mode="before")
    @classmethod
    def validate_number(cls, v, info):
        # Bools, NaN and infinities are rejected
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
            raise ValueError(f"{info.field_name} must be a finite number")
        return float(v)

    @property
    def key(self) -> tuple[str, str]:
        return (self.type, self.id)


ProgressCollection = TypeAdapter(list[ProgressRecord])
