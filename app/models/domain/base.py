"""
Shared base for domain models that travel over the wire.

Python code uses snake_case attributes; REST bodies and socket events use
camelCase keys so web clients see `senderId`, `createdAt`, `hasMore`...
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """JSON-safe camelCase dict for socket emits and REST envelopes."""
        return self.model_dump(mode="json", by_alias=True)
