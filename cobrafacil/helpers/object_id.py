from beanie.odm.fields import PydanticObjectId
from bson.errors import InvalidId

from cobrafacil.core.exceptions import NotFoundError


def parse_object_id(value: str, label: str = "Record") -> PydanticObjectId:
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"{label} not found")
