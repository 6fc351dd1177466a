from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from ztp.core.exceptions import BaseApplicationException, record_error
from ztp.core.logging import get_logger
from ztp.templates import (
    TemplateCatalog,
    TemplateExecutor,
    TemplateGenerator,
)

logger = get_logger(__name__)


class TemplateTools:
    """Tool handlers over the template catalog, generator and executor."""

    def __init__(
        self,
        catalog: TemplateCatalog,
        generator: TemplateGenerator,
        executor: TemplateExecutor,
    ) -> None:
        self.catalog = catalog
        self.generator = generator
        self.executor = executor

    def _fail(self, tool: str, error: BaseApplicationException, **context: Any) -> ToolError:
        record_error(error, tool=tool, **context)
        return ToolError(error.message)

    def retrieve_templates(self, only_ids: bool = False) -> list[Any]:
        """Returns all deployment cloud-init templates that are available on the system."""
        logger.info("retrieve_templates", only_ids=only_ids)
        try:
            if only_ids:
                return self.catalog.list_ids()
            return [d.model_dump() for d in self.catalog.list()]
        except BaseApplicationException as err:
            raise self._fail("retrieve_templates", err) from err

    def retrieve_template_by_id(self, id: str) -> dict[str, Any]:
        """Return the information about a particular template specified by id."""
        logger.info("retrieve_template_by_id", template_id=id)
        try:
            return self.catalog.get(id).model_dump()
        except BaseApplicationException as err:
            raise self._fail("retrieve_template_by_id", err, template_id=id) from err

    def retrieve_template_content(self, id: str) -> str:
        """Return the payload template source of a particular template specified by id."""
        logger.info("retrieve_template_content", template_id=id)
        try:
            return self.catalog.content(id)
        except BaseApplicationException as err:
            raise self._fail("retrieve_template_content", err, template_id=id) from err

    def create_template(
        self,
        id: str,
        name: str = "",
        description: str = "",
        parameters: list[dict[str, Any]] | None = None,
        update_packages: bool = False,
        upgrade_packages: bool = False,
        packages: list[str] | None = None,
        commands: list[str] | None = None,
        files: list[dict[str, Any]] | None = None,
    ) -> str:
        """Create and add a new template, generating its description.json and template.yaml.

        ``parameters`` entries carry ``name`` (an identifier such as ``Host``) and
        ``description``; ``files`` entries carry ``path`` and ``content``.
        """
        logger.info("create_template", template_id=id)
        payload = {
            "id": id,
            "name": name,
            "description": description,
            "parameters": parameters or [],
            "update_packages": update_packages,
            "upgrade_packages": upgrade_packages,
            "packages": packages or [],
            "commands": commands or [],
            "files": files or [],
        }
        try:
            self.generator.create(payload)
        except BaseApplicationException as err:
            raise self._fail("create_template", err, template_id=id) from err
        return f"Successfully created the template with id={id}"

    def remove_template(self, id: str) -> str:
        """Delete the template specified by the id."""
        logger.info("remove_template", template_id=id)
        try:
            self.generator.delete(id)
        except BaseApplicationException as err:
            raise self._fail("remove_template", err, template_id=id) from err
        return f"Successfully deleted template with id: {id}"

    def render_template(self, id: str, parameters: dict[str, Any] | str | None = None) -> str:
        """Render a template with the given parameters and return base64 cloud-init user data."""
        logger.info("render_template", template_id=id)
        try:
            return self.executor.render(id, parameters)
        except BaseApplicationException as err:
            raise self._fail("render_template", err, template_id=id) from err


def register(mcp: FastMCP, tools: TemplateTools) -> None:
    mcp.tool(
        name="retrieve_templates",
        description="Returns all deployment Cloud-Init templates that are available on the system.",
    )(tools.retrieve_templates)
    mcp.tool(
        name="retrieve_template_by_id",
        description="Return the information about a particular template specified by ID.",
    )(tools.retrieve_template_by_id)
    mcp.tool(
        name="retrieve_template_content",
        description="Return contents of a particular template specified by ID.",
    )(tools.retrieve_template_content)
    mcp.tool(
        name="create_template",
        description=(
            "Create and add a new template based on the template files required: "
            "description.json and template.yaml."
        ),
    )(tools.create_template)
    mcp.tool(
        name="remove_template",
        description="Delete the template specified by the id.",
    )(tools.remove_template)
    mcp.tool(
        name="render_template",
        description=(
            "Render the template specified by id with the given parameters and return the "
            "base64 encoded user data used to deploy a machine. Use an empty object when the "
            "template does not require parameters."
        ),
    )(tools.render_template)
