"""Shared pydantic base for models that travel over the wire."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Model serialized with camelCase keys (``model_dump(by_alias=True)``).

    Snake_case field names are still accepted on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
