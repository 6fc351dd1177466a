from ztp.templates.catalog import TemplateCatalog
from ztp.templates.executor import TemplateExecutor, parse_parameters
from ztp.templates.generator import KeyedLock, TemplateGenerator
from ztp.templates.models import (
    DESCRIPTION_MEMBER,
    PAYLOAD_MEMBER,
    TemplateDefinition,
    TemplateDescription,
    TemplateFile,
    TemplateParameter,
    validate_template_id,
)
from ztp.templates.store import FileSystemTemplateStore, InMemoryTemplateStore, TemplateStore

__all__ = [
    "DESCRIPTION_MEMBER",
    "PAYLOAD_MEMBER",
    "FileSystemTemplateStore",
    "InMemoryTemplateStore",
    "KeyedLock",
    "TemplateCatalog",
    "TemplateDefinition",
    "TemplateDescription",
    "TemplateExecutor",
    "TemplateFile",
    "TemplateGenerator",
    "TemplateParameter",
    "TemplateStore",
    "parse_parameters",
    "validate_template_id",
]
