"""Conversion of decoded values into a skill's payload schema.

Skills are declared over a concrete payload model but the workflow engine only
ever handles them through the erased ``BaseSkill`` view. Every erased call
recovers the concrete type here: a value that already is an instance of the
schema passes through untouched, anything else takes a JSON round trip and is
validated into the schema.
"""

import json
from typing import Any, Dict, Generic, Type, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from ber.domain.errors import ConversionError

T = TypeVar("T")


def to_json(value: Any) -> str:
    """Serialize a value (models included) to a JSON string"""

    try:
        return json.dumps(to_jsonable_python(value))
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise ConversionError(f"failed to marshal data: {e}") from e


def convert_to(schema: Type[T], value: Any) -> T:
    """Convert value into an instance of schema"""

    return SchemaDescriptor(schema).convert(value)


class SchemaDescriptor(Generic[T]):
    """Decode/encode pair bound to one payload schema"""

    def __init__(self, schema: Type[T]):
        self.schema = schema
        self.adapter: TypeAdapter = TypeAdapter(schema)

    @property
    def name(self) -> str:
        return getattr(self.schema, "__name__", repr(self.schema))

    def is_instance(self, value: Any) -> bool:
        return isinstance(self.schema, type) and isinstance(value, self.schema)

    def convert(self, value: Any) -> T:
        """Direct match first, structural round trip otherwise"""

        if self.is_instance(value):
            return value

        raw = to_json(value)
        try:
            return self.adapter.validate_json(raw)
        except ValidationError as e:
            raise ConversionError(f"failed to unmarshal data into {self.name}: {e}") from e

    def dump(self, value: Any) -> Any:
        """Encode a payload into plain JSON-compatible data"""

        return json.loads(to_json(value))

    def json_schema(self) -> Dict[str, Any]:
        return self.adapter.json_schema()
