"""Shared Pydantic base models."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Immutable model exchanged as camelCase JSON.

    Fields are declared in snake_case and accepted under either name.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, object]:
        """Serialize to a camelCase JSON-compatible dictionary."""
        return self.model_dump(mode="json", by_alias=True)
