from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from ztp.core.exceptions import TemplateValidationError

TEMPLATE_ID_PATTERN = r"^[a-z0-9_-]+$"
_TEMPLATE_ID_RE = re.compile(TEMPLATE_ID_PATTERN)

DESCRIPTION_MEMBER = "description.json"
PAYLOAD_MEMBER = "template.yaml"
REQUIRED_MEMBERS = (DESCRIPTION_MEMBER, PAYLOAD_MEMBER)

PARAMETER_NAME_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"
# Names the template expression parser reads as literals or operators.
RESERVED_PARAMETER_NAMES = frozenset(
    {"and", "else", "false", "False", "if", "in", "is"}
    | {"none", "None", "not", "or", "true", "True"}
)


def validate_template_id(value: Any) -> str:
    if not isinstance(value, str) or not _TEMPLATE_ID_RE.fullmatch(value):
        raise TemplateValidationError(
            f"Invalid template id {value!r}: must match {TEMPLATE_ID_PATTERN}",
            template_id=value if isinstance(value, str) else None,
        )
    return value


class TemplateParameter(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: str = Field(
        pattern=PARAMETER_NAME_PATTERN,
        description="Placeholder name a caller must supply when rendering the template.",
    )
    description: str = ""

    @field_validator("name")
    @classmethod
    def _not_reserved(cls, v: str) -> str:
        if v in RESERVED_PARAMETER_NAMES:
            raise ValueError(f"{v!r} is a reserved word and cannot name a parameter")
        return v


class TemplateFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str = Field(min_length=1, description="Absolute path of the file on the machine.")
    content: str = ""


class TemplateDefinition(BaseModel):
    """Structured input from which a template bundle is generated."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True, extra="ignore")

    id: str = Field(pattern=TEMPLATE_ID_PATTERN)
    name: str = ""
    description: str = ""
    parameters: list[TemplateParameter] = Field(default_factory=list)
    update_packages: bool = Field(
        default=False, validation_alias=AliasChoices("update_packages", "updatePackages")
    )
    upgrade_packages: bool = Field(
        default=False, validation_alias=AliasChoices("upgrade_packages", "upgradePackages")
    )
    packages: list[str] = Field(default_factory=list)
    commands: list[str] = Field(default_factory=list)
    files: list[TemplateFile] = Field(default_factory=list)

    @model_validator(mode="after")
    def _default_name(self) -> TemplateDefinition:
        if not self.name:
            self.name = " ".join(
                part.capitalize() for part in re.split(r"[_\-\s]+", self.id) if part
            )
        return self

    @property
    def parameter_names(self) -> list[str]:
        return [p.name for p in self.parameters]

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> TemplateDefinition:
        try:
            return cls.model_validate(payload)
        except ValidationError as err:
            template_id = payload.get("id") if isinstance(payload, Mapping) else None
            raise TemplateValidationError(
                f"Invalid template definition: {err.error_count()} validation error(s)",
                template_id=template_id if isinstance(template_id, str) else None,
                details={"errors": err.errors(include_url=False, include_context=False)},
                cause=err,
            ) from err


class TemplateDescription(BaseModel):
    """Metadata document stored alongside every bundle."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(pattern=TEMPLATE_ID_PATTERN)
    name: str = ""
    description: str = ""
    parameters: dict[str, str] = Field(default_factory=dict)

    @property
    def parameter_names(self) -> list[str]:
        return list(self.parameters)
