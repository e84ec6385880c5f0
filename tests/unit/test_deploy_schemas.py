import pytest
from pydantic import ValidationError

from deploy_service.schemas.deploy_schemas import BuildCommandIn, DeployCreate, DeploySubmitResponse
from deploy_service.models.deploy import DeployStatus


def test_build_command_accepts_comando_and_ordem():
    command = BuildCommandIn.model_validate({"comando": "npm ci", "terminalId": "t1", "ordem": 3})
    assert command.command_text == "npm ci"
    assert command.terminal_id == "t1"
    assert command.order == 3


def test_build_command_accepts_english_aliases():
    command = BuildCommandIn.model_validate({"command": "make", "order": 1})
    assert command.command_text == "make"
    assert command.terminal_id is None


@pytest.mark.parametrize("order", [-1, 2**31, 2**63])
def test_build_command_order_must_fit_the_column(order):
    with pytest.raises(ValidationError):
        BuildCommandIn.model_validate({"comando": "npm ci", "ordem": order})


def test_build_command_order_bounds_are_inclusive():
    assert BuildCommandIn.model_validate({"comando": "a", "ordem": 0}).order == 0
    assert BuildCommandIn.model_validate({"comando": "a", "ordem": 2**31 - 1}).order == 2**31 - 1


def test_build_command_requires_text():
    with pytest.raises(ValidationError):
        BuildCommandIn.model_validate({"terminalId": "t1"})


def test_deploy_create_from_camel_case(deploy_payload):
    data = DeployCreate.model_validate(deploy_payload)
    assert data.repo_url == deploy_payload["repoUrl"]
    assert data.build_output == "dist"
    assert data.site_name == "shop"
    assert data.application_path is None
    assert [c.command_text for c in data.build_commands] == ["npm ci", "npm run build"]


def test_deploy_create_by_field_name():
    data = DeployCreate(
        repo_url="https://example.com/r.git",
        branch="dev",
        build_commands=[BuildCommandIn(command_text="make")],
        build_output="out",
        site_name="blog",
        application_path="admin",
    )
    assert data.application_path == "admin"


@pytest.mark.parametrize("missing", ["repoUrl", "branch", "buildCommands", "buildOutput", "siteName"])
def test_deploy_create_missing_required_field(deploy_payload, missing):
    deploy_payload.pop(missing)
    with pytest.raises(ValidationError):
        DeployCreate.model_validate(deploy_payload)


def test_submit_response_serializes_camel_case():
    import uuid

    response = DeploySubmitResponse(id=uuid.uuid4(), status=DeployStatus.PENDING)
    dumped = response.model_dump(by_alias=True, mode="json")
    assert dumped["status"] == "Pending"
    assert set(dumped) == {"id", "status"}
