import pytest

from ztp.core.exceptions import TemplateValidationError
from ztp.templates.models import TemplateDefinition, TemplateDescription, validate_template_id


def test_definition_defaults_name_from_id() -> None:
    definition = TemplateDefinition(id="cpu_k8s-deployment")
    assert definition.name == "Cpu K8s Deployment"
    assert definition.parameters == []
    assert definition.update_packages is False


def test_definition_accepts_camel_case_package_flags() -> None:
    definition = TemplateDefinition.from_payload(
        {"id": "demo", "updatePackages": True, "upgrade_packages": True}
    )
    assert definition.update_packages is True
    assert definition.upgrade_packages is True


def test_definition_keeps_parameter_order_and_duplicates() -> None:
    definition = TemplateDefinition.from_payload(
        {
            "id": "demo",
            "parameters": [{"name": "B"}, {"name": "A"}, {"name": "B", "description": "again"}],
        }
    )
    assert definition.parameter_names == ["B", "A", "B"]


@pytest.mark.parametrize("bad_id", ["Upper", "with space", "../escape", "", "dots.not.allowed"])
def test_from_payload_rejects_malformed_ids(bad_id: str) -> None:
    with pytest.raises(TemplateValidationError) as exc_info:
        TemplateDefinition.from_payload({"id": bad_id})
    assert exc_info.value.details["errors"]


def test_from_payload_rejects_empty_parameter_name() -> None:
    with pytest.raises(TemplateValidationError) as exc_info:
        TemplateDefinition.from_payload({"id": "demo", "parameters": [{"name": "  "}]})
    assert exc_info.value.template_id == "demo"


def test_validate_template_id() -> None:
    assert validate_template_id("cpu_k3s-1") == "cpu_k3s-1"
    with pytest.raises(TemplateValidationError):
        validate_template_id("../etc")
    with pytest.raises(TemplateValidationError):
        validate_template_id(None)


def test_description_parameter_names() -> None:
    description = TemplateDescription(id="demo", parameters={"Host": "", "Token": ""})
    assert description.parameter_names == ["Host", "Token"]


@pytest.mark.parametrize("bad_name", ["api-token", "Host Name", "1st", "true", "not", "{{ x }}"])
def test_from_payload_rejects_parameter_names_that_cannot_be_placeholders(
    bad_name: str,
) -> None:
    with pytest.raises(TemplateValidationError) as exc_info:
        TemplateDefinition.from_payload({"id": "demo", "parameters": [{"name": bad_name}]})
    assert exc_info.value.template_id == "demo"


def test_parameter_names_accept_identifiers() -> None:
    definition = TemplateDefinition.from_payload(
        {"id": "demo", "parameters": [{"name": "ApiToken"}, {"name": "_host_2"}]}
    )
    assert definition.parameter_names == ["ApiToken", "_host_2"]
