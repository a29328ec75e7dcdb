from bson import ObjectId
from bson.errors import InvalidId

from core.exceptions import NotFoundError


def parse_object_id(value: str, entity: str = "Resource") -> ObjectId:
    """Convert a client supplied id; malformed ids are reported as not found."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(entity)
