import uuid
from datetime import date
from enum import Enum
from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


class CamelCaseBaseModel(BaseModel):
    """
    Base for every request and response schema.

    Fields are snake_case in Python and camelCase on the wire; both spellings
    are accepted on input. On output, UUIDs, enums and dates become strings
    and nested models are dumped by alias. Dict keys pass through unchanged,
    so ``changedFields`` and ``allUnreadMap`` keep their field names and
    application ids as-is.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*")
    def serialize_any(self, value):
        if value is None or isinstance(value, (bool, int, float, str)):
            return value

        if isinstance(value, Enum):
            return value.value

        # covers datetime too
        if isinstance(value, date):
            return value.isoformat()

        if isinstance(value, uuid.UUID):
            return str(value)

        if isinstance(value, BaseModel):
            return value.model_dump(by_alias=True)

        if isinstance(value, (list, tuple, set)):
            return [self.serialize_any(item) for item in value]

        if isinstance(value, dict):
            return {key: self.serialize_any(val) for key, val in value.items()}

        return str(value)
