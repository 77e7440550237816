from pathlib import Path

import pytest

from scanner_deploy.common.config import DEFAULT_IMAGE, DEFAULT_JOB_NAME, DeploymentConfiguration
from scanner_deploy.common.errors import ConfigurationError


def test_defaults_and_resolver_used_when_namespace_unset() -> None:
    config = DeploymentConfiguration.from_env({}, lambda: "active-project")
    assert config.namespace == "active-project"
    assert config.image_reference == DEFAULT_IMAGE
    assert config.workload_name == DEFAULT_JOB_NAME
    assert config.template_path.name == "scanner-job.yaml.template"


def test_environment_namespace_skips_resolver() -> None:
    def resolver() -> str:
        raise AssertionError("resolver should not be consulted")

    config = DeploymentConfiguration.from_env(
        {"NAMESPACE": "scan-1", "SCANNER_IMAGE": "registry/example:v1", "JOB_TEMPLATE": "/tmp/job.tmpl"},
        resolver,
    )
    assert config.namespace == "scan-1"
    assert config.image_reference == "registry/example:v1"
    assert config.template_path == Path("/tmp/job.tmpl")


def test_unresolved_namespace_fails_fast() -> None:
    config = DeploymentConfiguration.from_env({}, lambda: None)
    assert config.namespace is None
    with pytest.raises(ConfigurationError, match="NAMESPACE"):
        config.require_namespace()


def test_invalid_numbers_rejected() -> None:
    with pytest.raises(ConfigurationError, match="SCANNER_TIMEOUT"):
        DeploymentConfiguration.from_env({"SCANNER_TIMEOUT": "soon"})
    with pytest.raises(ConfigurationError, match="SCANNER_RETRIES"):
        DeploymentConfiguration.from_env({"SCANNER_RETRIES": "-1"})


def test_overrides_ignore_none_and_keep_config_immutable() -> None:
    base = DeploymentConfiguration(namespace="scan-1")
    updated = base.with_overrides(image_reference="registry/example:v2", timeout=None)
    assert updated.image_reference == "registry/example:v2"
    assert updated.timeout == base.timeout
    assert base.image_reference == DEFAULT_IMAGE
    with pytest.raises(AttributeError):
        base.namespace = "other"  # type: ignore[misc]
