"""Tests for InMemoryDeploymentService."""

from pathlib import Path

import pytest
import yaml

from cloudext.extensions.errors import RemoteOperationError
from cloudext.extensions.memory import InMemoryDeploymentService
from cloudext.extensions.models import DeploymentSlot, ExtensionConfiguration, ExtensionInstance

SNAPSHOT = {
    "contoso-svc": {
        "extensions": [
            {
                "id": "WebRole-DomainJoin-Production-0",
                "provider_namespace": "Microsoft.Windows.Azure.Extensions",
                "type": "DomainJoin",
                "thumbprint": "AB12",
                "thumbprint_algorithm": "sha1",
            }
        ],
        "certificates": [
            {
                "thumbprint": "CD34",
                "subject_dn": "DC=Windows Azure Service Management for Extensions",
            }
        ],
        "deployments": {
            "Production": {"Default": ["WebRole-DomainJoin-Production-0"]},
            "staging": None,
        },
    }
}


def _instance(ext_id: str) -> ExtensionInstance:
    return ExtensionInstance(id=ext_id, provider_namespace="Ns", type="T")


class TestSnapshotLoading:
    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "state.yaml"
        path.write_text(yaml.safe_dump(SNAPSHOT), encoding="utf-8")
        service = InMemoryDeploymentService.from_yaml(path)

        assert [e.id for e in service.list_extensions("contoso-svc")] == [
            "WebRole-DomainJoin-Production-0"
        ]
        assert service.list_certificates("contoso-svc")[0].thumbprint == "CD34"
        production = service.get_deployment_configuration("contoso-svc", DeploymentSlot.PRODUCTION)
        assert production == ExtensionConfiguration(default=["WebRole-DomainJoin-Production-0"])
        staging = service.get_deployment_configuration("contoso-svc", DeploymentSlot.STAGING)
        assert staging == ExtensionConfiguration()

    def test_empty_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "state.yaml"
        path.write_text("", encoding="utf-8")
        service = InMemoryDeploymentService.from_yaml(path)
        assert service.list_extensions("any") == []

    def test_non_mapping_yaml_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "state.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="YAML object"):
            InMemoryDeploymentService.from_yaml(path)


class TestServiceBehaviour:
    """Remote semantics the orchestrator relies on."""

    def test_missing_deployment_has_no_configuration(self) -> None:
        service = InMemoryDeploymentService()
        assert service.get_deployment_configuration("svc", DeploymentSlot.STAGING) is None
        with pytest.raises(RemoteOperationError):
            service.set_deployment_configuration(
                "svc", DeploymentSlot.STAGING, ExtensionConfiguration()
            )

    def test_duplicate_add_fails(self) -> None:
        service = InMemoryDeploymentService()
        service.add_extension("svc", _instance("x"))
        with pytest.raises(RemoteOperationError) as exc_info:
            service.add_extension("svc", _instance("x"))
        assert exc_info.value.operation == "add_extension"
        assert service.calls == [("add_extension", "svc", "x")]

    def test_delete_unknown_fails(self) -> None:
        with pytest.raises(RemoteOperationError):
            InMemoryDeploymentService().delete_extension("svc", "nope")

    def test_configuration_reads_are_copies(self) -> None:
        service = InMemoryDeploymentService()
        service.create_deployment("svc", DeploymentSlot.PRODUCTION, ExtensionConfiguration(default=["a"]))
        first = service.get_deployment_configuration("svc", DeploymentSlot.PRODUCTION)
        first.default.append("mutated")
        second = service.get_deployment_configuration("svc", DeploymentSlot.PRODUCTION)
        assert second.default == ["a"]

    def test_services_are_isolated(self) -> None:
        service = InMemoryDeploymentService()
        service.seed_extension("one", _instance("x"))
        assert service.list_extensions("two") == []
