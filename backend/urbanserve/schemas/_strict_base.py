"""Strict schema baselines: unexpected fields are rejected."""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Response DTO base, readable straight from ORM rows."""

    model_config = ConfigDict(extra="forbid", from_attributes=True)


class StrictRequestModel(BaseModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, str_strip_whitespace=True)
