"""Primary-key lookups that raise domain errors instead of returning None."""
import uuid
from typing import Optional, Type, TypeVar

from sqlalchemy.orm import Session

from smartstudy.core.exceptions import ResourceNotFoundError

ModelT = TypeVar("ModelT")


def parse_uuid(raw_id) -> Optional[uuid.UUID]:
    if isinstance(raw_id, uuid.UUID):
        return raw_id
    try:
        return uuid.UUID(str(raw_id))
    except (TypeError, ValueError, AttributeError):
        return None


def get_or_404(db: Session, model: Type[ModelT], raw_id, resource_name: str) -> ModelT:
    """Load ``model`` by id; malformed ids are reported as not found."""
    resource_id = parse_uuid(raw_id)
    resource = db.get(model, resource_id) if resource_id is not None else None
    if resource is None:
        raise ResourceNotFoundError(resource_name, raw_id)
    return resource
