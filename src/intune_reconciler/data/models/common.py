from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field


class GraphBaseModel(BaseModel):
    """Base class for Graph payload helpers."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    @classmethod
    def from_graph(cls, payload: dict[str, Any]) -> Self:
        """Hydrate a model from a raw Graph response."""
        return cls.model_validate(payload)

    def to_graph(self) -> dict[str, Any]:
        """Serialize to a Graph-friendly payload."""
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
        )


class GraphResource(GraphBaseModel):
    """Shared identifier for Graph resources."""

    id: str = Field(alias="id")
