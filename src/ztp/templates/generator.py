from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from jinja2 import FileSystemLoader, TemplateError as JinjaTemplateError
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ztp.core.exceptions import (
    ConfigurationError,
    TemplateConflictError,
    TemplateError,
    TemplateRenderError,
    TemplateValidationError,
)
from ztp.core.logging import get_logger
from ztp.templates.catalog import parse_description
from ztp.templates.functions import create_environment
from ztp.templates.models import (
    DESCRIPTION_MEMBER,
    REQUIRED_MEMBERS,
    TemplateDefinition,
    TemplateDescription,
    validate_template_id,
)
from ztp.templates.store import TemplateStore

logger = get_logger(__name__)
tracer = trace.get_tracer(__name__)


class KeyedLock:
    """One mutex per key, held only while someone uses or waits on it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(key, (threading.Lock(), 0))
            self._locks[key] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                _, users = self._locks[key]
                if users == 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, users - 1)


class TemplateGenerator:
    """Materializes bundles from template definitions and removes them again."""

    def __init__(
        self,
        store: TemplateStore,
        meta_templates_dir: Path,
        suffix: str = ".templ",
        locks: KeyedLock | None = None,
    ) -> None:
        self._store = store
        self._meta_dir = Path(meta_templates_dir)
        self._suffix = suffix
        self._locks = locks or KeyedLock()
        self._env = create_environment(FileSystemLoader(str(self._meta_dir)))

    def meta_templates(self) -> list[Path]:
        if not self._meta_dir.is_dir():
            raise ConfigurationError(
                "meta_templates_dir", f"{self._meta_dir} is not a directory"
            )
        sources = sorted(p for p in self._meta_dir.iterdir() if p.is_file())
        if not sources:
            raise ConfigurationError("meta_templates_dir", f"{self._meta_dir} is empty")
        return sources

    def output_name(self, source: Path) -> str:
        name = source.name
        return name[: -len(self._suffix)] if name.endswith(self._suffix) else name

    def render_members(self, definition: TemplateDefinition) -> dict[str, bytes]:
        context: dict[str, Any] = definition.model_dump()
        members: dict[str, bytes] = {}
        for source in self.meta_templates():
            try:
                template = self._env.get_template(source.name)
                rendered = template.render(context)
            except (JinjaTemplateError, OSError, ArithmeticError, TypeError, ValueError) as err:
                raise TemplateRenderError(
                    f"Failed to render {source.name} for template {definition.id}: {err}",
                    template_id=definition.id,
                    details={"meta_template": source.name},
                    cause=err,
                ) from err
            members[self.output_name(source)] = rendered.encode("utf-8")
            logger.debug(
                "template_member_rendered",
                template_id=definition.id,
                meta_template=source.name,
                output=self.output_name(source),
            )

        missing = [name for name in REQUIRED_MEMBERS if name not in members]
        if missing:
            raise TemplateRenderError(
                f"Meta templates did not produce {', '.join(missing)} for {definition.id}",
                template_id=definition.id,
                details={"missing": missing},
            )
        return members

    def create(self, definition: TemplateDefinition | Mapping[str, Any]) -> TemplateDescription:
        if not isinstance(definition, TemplateDefinition):
            definition = TemplateDefinition.from_payload(definition)

        with tracer.start_as_current_span("template_create") as span:
            span.set_attributes(
                {
                    "template.id": definition.id,
                    "template.parameters": len(definition.parameters),
                    "template.packages": len(definition.packages),
                    "template.commands": len(definition.commands),
                    "template.files": len(definition.files),
                }
            )
            try:
                with self._locks.hold(definition.id):
                    if self._store.exists(definition.id):
                        raise TemplateConflictError(
                            f"Template {definition.id} already exists",
                            template_id=definition.id,
                        )
                    members = self.render_members(definition)
                    try:
                        description = parse_description(
                            definition.id, members[DESCRIPTION_MEMBER]
                        )
                    except TemplateValidationError as err:
                        raise TemplateRenderError(
                            f"Generated {DESCRIPTION_MEMBER} for {definition.id} is invalid",
                            template_id=definition.id,
                            cause=err,
                        ) from err
                    self._store.put(definition.id, members)
            except TemplateError as err:
                span.record_exception(err)
                span.set_status(Status(StatusCode.ERROR, err.message))
                logger.error(
                    "template_create_failed",
                    template_id=definition.id,
                    error_type=type(err).__name__,
                    error=err.message,
                )
                raise

            span.set_status(Status(StatusCode.OK))

        logger.info(
            "template_created",
            template_id=definition.id,
            members=sorted(members),
            parameters=description.parameter_names,
        )
        return description

    def delete(self, template_id: str) -> None:
        validate_template_id(template_id)
        with tracer.start_as_current_span("template_delete") as span:
            span.set_attribute("template.id", template_id)
            try:
                with self._locks.hold(template_id):
                    self._store.delete(template_id)
            except TemplateError as err:
                span.record_exception(err)
                span.set_status(Status(StatusCode.ERROR, err.message))
                logger.error(
                    "template_delete_failed",
                    template_id=template_id,
                    error_type=type(err).__name__,
                    error=err.message,
                )
                raise
            span.set_status(Status(StatusCode.OK))
        logger.info("template_deleted", template_id=template_id)
