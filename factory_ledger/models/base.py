from datetime import datetime, timezone

from bson import ObjectId
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Identifiers are ObjectId hex strings regardless of the storage backend."""
    return str(ObjectId())


class CamelModel(BaseModel):
    """snake_case in Python and storage, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )
