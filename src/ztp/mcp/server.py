from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from ztp.core.config import Settings, get_settings
from ztp.core.logging import configure_from_settings, get_logger
from ztp.mcp.tools.templates import TemplateTools, register
from ztp.templates import (
    FileSystemTemplateStore,
    TemplateCatalog,
    TemplateExecutor,
    TemplateGenerator,
)

logger = get_logger(__name__)

INSTRUCTIONS = (
    "This server manages the cloud-init deployment templates used to provision machines "
    "through a zero-touch provisioning agent: list, inspect, create, remove and render them."
)


def build_tools(settings: Settings) -> TemplateTools:
    templates = settings.templates
    store = FileSystemTemplateStore(templates.bundles_dir)
    return TemplateTools(
        catalog=TemplateCatalog(store),
        generator=TemplateGenerator(
            store,
            templates.meta_templates_dir,
            suffix=templates.meta_template_suffix,
        ),
        executor=TemplateExecutor(store, strict=templates.strict_parameters),
    )


def build_server(settings: Settings | None = None) -> FastMCP:
    settings = settings or get_settings()
    mcp = FastMCP(
        name=settings.app_name,
        instructions=INSTRUCTIONS,
        host=settings.mcp.host,
        port=settings.mcp.port,
    )
    register(mcp, build_tools(settings))
    logger.info(
        "mcp_server_created",
        bundles_dir=str(settings.templates.bundles_dir),
        meta_templates_dir=str(settings.templates.meta_templates_dir),
        strict_parameters=settings.templates.strict_parameters,
    )
    return mcp


def main() -> None:
    settings = get_settings()
    configure_from_settings(settings.observability)
    server = build_server(settings)
    transport = settings.mcp.transport
    logger.info("mcp_server_starting", transport=transport)
    try:
        server.run(transport=transport)
    except KeyboardInterrupt:
        logger.info("mcp_server_interrupted")
    except Exception:
        logger.exception("mcp_server_crashed", transport=transport)
        raise


if __name__ == "__main__":
    main()
