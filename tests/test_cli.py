from typing import Dict, List, Optional

import pytest
from typer.testing import CliRunner

from scanner_deploy.cluster import OcClient
from scanner_deploy.common.config import DeploymentConfiguration
from scanner_deploy.orchestrator import LifecycleOrchestrator
from scanner_deploy.orchestrator import cli
from tests.fake_oc import FakeOc
from tests.test_lifecycle import FakeBuilder

runner = CliRunner()

CLEAN_ENV: Dict[str, Optional[str]] = {
    key: None
    for key in (
        "NAMESPACE",
        "SCANNER_IMAGE",
        "JOB_TEMPLATE",
        "JOB_NAME",
        "OC_CMD",
        "SCANNER_CONTEXT",
        "SCANNER_POLL_INTERVAL",
        "SCANNER_TIMEOUT",
        "SCANNER_RETRIES",
    )
}


@pytest.fixture
def builder() -> FakeBuilder:
    return FakeBuilder()


@pytest.fixture
def fake_oc(monkeypatch: pytest.MonkeyPatch, builder: FakeBuilder) -> FakeOc:
    oc = FakeOc()
    oc.seed_openshift("scan-1")

    def _build(config: DeploymentConfiguration) -> LifecycleOrchestrator:
        return LifecycleOrchestrator(config, OcClient(runner=oc), builder=builder)  # type: ignore[arg-type]

    monkeypatch.setattr(cli, "build_orchestrator", _build)
    return oc


def _invoke(args: List[str], **env: str):
    return runner.invoke(cli.app, args, env={**CLEAN_ENV, **env})


def test_unknown_action_exits_non_zero_with_usage(fake_oc: FakeOc) -> None:
    result = _invoke(["bogus"])
    assert result.exit_code == 1
    assert "Unknown action 'bogus'" in result.output
    assert "Usage:" in result.output
    assert fake_oc.calls == []


def test_full_deploy_reports_failing_push(fake_oc: FakeOc, builder: FakeBuilder) -> None:
    builder.fail_on = "push"
    result = _invoke(["full-deploy", "--namespace", "scan-1"])
    assert result.exit_code == 1
    assert "An error occurred during: 'push'" in result.output
    assert "Step 3" not in result.output
    assert fake_oc.calls == []


def test_default_action_deploys_and_reminds_about_cleanup(fake_oc: FakeOc) -> None:
    result = _invoke(["--namespace", "scan-1", "--image", "registry/example:v1"])
    assert result.exit_code == 0, result.output
    assert "=> Step 1: Building Scanner Image" in result.output
    assert "=> Step 3: Deploying Scanner Job" in result.output
    assert "Manual cleanup will be required." in result.output
    assert fake_oc.lookup("job", "tls-scanner-job", "scan-1") is not None
    assert "Step 5" not in result.output


def test_cleanup_lists_failed_steps(fake_oc: FakeOc) -> None:
    assert _invoke(["deploy", "-n", "scan-1"]).exit_code == 0
    fake_oc.fail("remove-cluster-role-from-user", "cluster-reader")
    result = _invoke(["cleanup", "-n", "scan-1"])
    assert result.exit_code == 1
    assert "Cleanup finished with 1 failed step(s):" in result.output
    assert "revoke ClusterRole cluster-reader" in result.output
    assert fake_oc.lookup("job", "tls-scanner-job", "scan-1") is None


def test_cleanup_without_namespace_fails_fast(fake_oc: FakeOc) -> None:
    result = _invoke(["cleanup"], OC_CMD="scanner-deploy-no-such-oc-binary")
    assert result.exit_code == 1
    assert "Could not determine OpenShift project" in result.output
    assert fake_oc.calls == []


def test_status_reports_inferred_state(fake_oc: FakeOc) -> None:
    result = _invoke(["status", "-n", "scan-1"])
    assert result.exit_code == 0
    assert result.output.strip().endswith("unprovisioned")


def test_wait_reports_unreachable_cluster(fake_oc: FakeOc) -> None:
    assert _invoke(["deploy", "-n", "scan-1"]).exit_code == 0
    fake_oc.fail("get", "job", stderr="The connection to the server api.example:6443 was refused")
    result = _invoke(["wait", "-n", "scan-1"])
    assert result.exit_code == 1
    assert "An error occurred during: 'wait'" in result.output
    assert "was refused" in result.output


def test_status_reports_unreachable_cluster(fake_oc: FakeOc) -> None:
    fake_oc.fail("get", "job", stderr="The connection to the server api.example:6443 was refused")
    result = _invoke(["status", "-n", "scan-1"])
    assert result.exit_code == 1
    assert "An error occurred during: 'status'" in result.output


class _NoClusterClient:
    def __init__(self, *args, **kwargs) -> None:
        raise AssertionError("oc must not be consulted for local actions")


def test_build_configuration_never_queries_cluster(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "OcClient", _NoClusterClient)
    config = cli.load_configuration("build", {}, image="registry/example:v1")
    assert config.namespace is None
    assert config.image_reference == "registry/example:v1"


def test_missing_oc_leaves_namespace_unresolved() -> None:
    config = cli.load_configuration("deploy", {"OC_CMD": "scanner-deploy-no-such-oc-binary"})
    assert config.namespace is None
