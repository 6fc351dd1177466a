from __future__ import annotations

import base64
import json
from collections.abc import Mapping
from typing import Any

from jinja2 import TemplateError as JinjaTemplateError
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ztp.core.exceptions import (
    MissingParameterError,
    TemplateError,
    TemplateRenderError,
    TemplateValidationError,
)
from ztp.core.logging import get_logger
from ztp.templates.catalog import TemplateCatalog
from ztp.templates.functions import PAYLOAD_SYNTAX, create_environment
from ztp.templates.models import PAYLOAD_MEMBER, validate_template_id
from ztp.templates.store import TemplateStore

logger = get_logger(__name__)
tracer = trace.get_tracer(__name__)


def parse_parameters(
    template_id: str, parameters: Mapping[str, Any] | str | None
) -> dict[str, Any]:
    """Accept a parameter mapping or its JSON object text."""
    if parameters is None:
        return {}
    if isinstance(parameters, str):
        try:
            parameters = json.loads(parameters) if parameters.strip() else {}
        except json.JSONDecodeError as err:
            raise TemplateValidationError(
                f"Failed to parse parameters for template {template_id}: {err}",
                template_id=template_id,
                cause=err,
            ) from err
    if not isinstance(parameters, Mapping):
        raise TemplateValidationError(
            f"Parameters for template {template_id} must be an object, "
            f"got {type(parameters).__name__}",
            template_id=template_id,
        )
    return {str(key): value for key, value in parameters.items()}


class TemplateExecutor:
    """Renders a bundle's payload template into base64 user data."""

    def __init__(self, store: TemplateStore, strict: bool = True) -> None:
        self._store = store
        self._catalog = TemplateCatalog(store)
        self._strict = strict
        self._env = create_environment(**PAYLOAD_SYNTAX)

    def render_text(
        self,
        template_id: str,
        parameters: Mapping[str, Any] | str | None = None,
        strict: bool | None = None,
    ) -> str:
        validate_template_id(template_id)
        values = parse_parameters(template_id, parameters)
        strict = self._strict if strict is None else strict

        description = self._catalog.get(template_id)
        if strict:
            missing = [name for name in description.parameter_names if name not in values]
            if missing:
                raise MissingParameterError(template_id, missing)

        source = self._store.read(template_id, PAYLOAD_MEMBER)
        try:
            template = self._env.from_string(source.decode("utf-8"))
            return template.render(values)
        except (JinjaTemplateError, ArithmeticError, TypeError, ValueError) as err:
            raise TemplateRenderError(
                f"Failed to render {PAYLOAD_MEMBER} for template {template_id}: {err}",
                template_id=template_id,
                cause=err,
            ) from err

    def render(
        self,
        template_id: str,
        parameters: Mapping[str, Any] | str | None = None,
        strict: bool | None = None,
    ) -> str:
        with tracer.start_as_current_span("template_render") as span:
            span.set_attribute("template.id", str(template_id))
            try:
                rendered = self.render_text(template_id, parameters, strict=strict)
            except TemplateError as err:
                span.record_exception(err)
                span.set_status(Status(StatusCode.ERROR, err.message))
                logger.error(
                    "template_render_failed",
                    template_id=template_id,
                    error_type=type(err).__name__,
                    error=err.message,
                )
                raise
            encoded = base64.b64encode(rendered.encode("utf-8")).decode("ascii")
            span.set_attribute("render.bytes", len(rendered))
            span.set_status(Status(StatusCode.OK))

        logger.info("template_rendered", template_id=template_id, size=len(encoded))
        return encoded
