from __future__ import annotations

import json

from pydantic import ValidationError

from ztp.core.exceptions import (
    TemplateError,
    TemplateNotFoundError,
    TemplateValidationError,
)
from ztp.core.logging import get_logger
from ztp.templates.models import (
    DESCRIPTION_MEMBER,
    PAYLOAD_MEMBER,
    TemplateDescription,
    validate_template_id,
)
from ztp.templates.store import TemplateStore

logger = get_logger(__name__)


def parse_description(template_id: str, raw: bytes) -> TemplateDescription:
    try:
        data = json.loads(raw.decode("utf-8"))
        description = TemplateDescription.model_validate(data)
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as err:
        raise TemplateValidationError(
            f"Failed to parse {DESCRIPTION_MEMBER} for template {template_id}: {err}",
            template_id=template_id,
            cause=err,
        ) from err
    if description.id != template_id:
        raise TemplateValidationError(
            f"Template directory {template_id} declares id {description.id}",
            template_id=template_id,
            details={"declared_id": description.id},
        )
    return description


class TemplateCatalog:
    """Read-only view over the bundles held by a template store."""

    def __init__(self, store: TemplateStore) -> None:
        self._store = store

    def list(self) -> list[TemplateDescription]:
        descriptions: list[TemplateDescription] = []
        for template_id in self._store.list_ids():
            try:
                descriptions.append(self._load(template_id))
            except TemplateError as err:
                logger.warning(
                    "template_skipped",
                    template_id=template_id,
                    reason=err.message,
                    error_type=type(err).__name__,
                )
        return descriptions

    def list_ids(self) -> list[str]:
        return [description.id for description in self.list()]

    def get(self, template_id: str) -> TemplateDescription:
        validate_template_id(template_id)
        return self._load(template_id)

    def content(self, template_id: str) -> str:
        validate_template_id(template_id)
        self._load(template_id)
        return self._store.read(template_id, PAYLOAD_MEMBER).decode("utf-8")

    def _load(self, template_id: str) -> TemplateDescription:
        if not self._store.exists(template_id):
            raise TemplateNotFoundError(
                f"Template {template_id} does not exist", template_id=template_id
            )
        members = self._store.members(template_id)
        for member in (DESCRIPTION_MEMBER, PAYLOAD_MEMBER):
            if member not in members:
                raise TemplateNotFoundError(
                    f"Template {template_id} has no {member}",
                    template_id=template_id,
                    details={"member": member},
                )
        return parse_description(template_id, self._store.read(template_id, DESCRIPTION_MEMBER))
