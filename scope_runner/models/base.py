"""Base model configuration for validated, user-supplied settings."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Frozen model that rejects unknown keys and accepts aliases or field names."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)
