from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict


class MongoModel(BaseModel):
    """Pydantic model persisted as a MongoDB document keyed by one of its fields."""

    id_field: ClassVar[str]

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_serialization_defaults_required=True,
    )

    @classmethod
    def from_mongo(cls, doc: dict[str, Any]) -> Self:
        data = dict(doc)
        data[cls.id_field] = data.pop("_id")
        return cls.model_validate(data)
