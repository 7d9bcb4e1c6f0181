"""Shared decode/encode behaviour for stored documents."""

import logging
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, ValidationError


logger = logging.getLogger(__name__)


class DocumentModel(BaseModel):
    """Base for records stored in the document store.

    Attributes are snake_case in Python and camelCase on the wire.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_document(cls, data: dict[str, Any] | None) -> Self:
        """Decode a stored document, filling defaults for missing, null or malformed fields."""
        payload = {key: value for key, value in (data or {}).items() if value is not None}
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            invalid = {str(error["loc"][0]) for error in e.errors() if error.get("loc")}
            logger.warning(
                "Stored document has invalid fields, using defaults",
                extra={"model": cls.__name__, "fields": sorted(invalid)},
            )
            return cls.model_validate({key: value for key, value in payload.items() if key not in invalid})

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
