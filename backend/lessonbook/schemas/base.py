"""
Base schemas shared by request and response models.
"""

from typing import Any, Mapping, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from ..core.exceptions import ValidationException

ModelT = TypeVar("ModelT", bound=BaseModel)


class StandardizedModel(BaseModel):
    """Base model for read views handed back to callers."""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True, from_attributes=True)


class StrictRequestModel(BaseModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


def parse_request(model: Type[ModelT], payload: Mapping[str, Any]) -> ModelT:
    """Validate a raw payload, turning pydantic errors into a ValidationException."""
    try:
        return model.model_validate(dict(payload))
    except ValidationError as exc:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationException(
            f"Invalid {model.__name__}: {errors[0]['message'] if errors else exc}",
            code="INVALID_REQUEST",
            details={"errors": errors},
        ) from exc
