import unittest

import yaml

from scanner_deploy.cluster import CLUSTER_ROLE, SCC, OcClient, subprocess_runner
from scanner_deploy.common.errors import ApplyError, ConfigurationError, NotFoundError
from tests.fake_oc import FakeOc


class OcClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.oc = FakeOc()
        self.oc.seed_openshift("scan-1")
        self.client = OcClient(runner=self.oc)

    def test_delete_ignore_missing_on_absent_resource(self) -> None:
        self.client.delete("job", "tls-scanner-job", "scan-1", ignore_missing=True)
        self.client.delete("job", "tls-scanner-job", "scan-1", ignore_missing=True)
        self.assertIn("--ignore-not-found=true", self.oc.calls[-1])

    def test_delete_strict_raises_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            self.client.delete("job", "tls-scanner-job", "scan-1")

    def test_delete_other_failure_is_apply_error(self) -> None:
        self.oc.fail("delete", stderr="Error from server (Forbidden): cannot delete")
        with self.assertRaises(ApplyError):
            self.client.delete("job", "tls-scanner-job", "scan-1", ignore_missing=True)

    def test_get_and_exists(self) -> None:
        account = self.client.get("serviceaccount", "default", "scan-1")
        self.assertEqual(account["metadata"]["name"], "default")
        self.assertTrue(self.client.exists("serviceaccount", "default", "scan-1"))
        self.assertFalse(self.client.exists("job", "missing", "scan-1"))
        with self.assertRaises(NotFoundError):
            self.client.get("job", "missing", "scan-1")

    def test_apply_rejection_raises(self) -> None:
        self.oc.fail("apply", stderr="error: error validating data")
        with self.assertRaises(ApplyError) as ctx:
            self.client.apply("kind: Job\nmetadata:\n  name: x\n")
        self.assertIn("error validating data", ctx.exception.stderr)

    def test_grant_is_idempotent_and_revoke_of_unheld_role_succeeds(self) -> None:
        self.client.grant_role("default", "cluster-reader", "scan-1", CLUSTER_ROLE)
        self.client.grant_role("default", "cluster-reader", "scan-1", CLUSTER_ROLE)
        self.assertEqual(self.oc.bindings, {("clusterrole", "cluster-reader", "default", "scan-1")})
        self.client.revoke_role("default", "cluster-reader", "scan-1", CLUSTER_ROLE)
        self.client.revoke_role("default", "cluster-reader", "scan-1", CLUSTER_ROLE)
        self.assertEqual(self.oc.bindings, set())

    def test_scc_uses_scc_policy_verbs(self) -> None:
        self.client.grant_role("default", "privileged", "scan-1", SCC)
        self.assertEqual(self.oc.calls[-1][1:4], ["adm", "policy", "add-scc-to-user"])

    def test_revoke_failure_is_reported(self) -> None:
        self.oc.fail("remove-scc-from-user", stderr="error: forbidden")
        with self.assertRaises(ApplyError):
            self.client.revoke_role("default", "privileged", "scan-1", SCC)

    def test_holds_role_reads_bindings_for_service_account(self) -> None:
        self.assertFalse(self.client.holds_role("default", "cluster-reader", "scan-1", CLUSTER_ROLE))
        self.client.grant_role("default", "cluster-reader", "scan-1", CLUSTER_ROLE)
        self.client.grant_role("default", "privileged", "scan-1", SCC)
        self.assertTrue(self.client.holds_role("default", "cluster-reader", "scan-1", CLUSTER_ROLE))
        self.assertFalse(self.client.holds_role("default", "cluster-reader", "other", CLUSTER_ROLE))
        self.assertTrue(self.client.holds_role("default", "privileged", "scan-1", SCC))
        self.assertIn(["oc", "get", "rolebindings", "-n", "scan-1", "-o", "json"], self.oc.calls)

    def test_annotate_sets_and_removes_key(self) -> None:
        self.client.annotate("serviceaccount", "default", "scan-1", "example/key", "a,b")
        account = self.oc.lookup("serviceaccount", "default", "scan-1")
        self.assertEqual(account["metadata"]["annotations"], {"example/key": "a,b"})
        self.client.annotate("serviceaccount", "default", "scan-1", "example/key", None)
        self.assertEqual(account["metadata"]["annotations"], {})
        with self.assertRaises(NotFoundError):
            self.client.annotate("serviceaccount", "missing", "scan-1", "example/key", None)

    def test_copy_secret_rewrites_namespace_and_strips_server_metadata(self) -> None:
        self.client.copy_secret("pull-secret", "openshift-config", "scan-1")
        applied = yaml.safe_load(self.oc.applied[-1])
        self.assertEqual(applied["metadata"]["namespace"], "scan-1")
        for field in ("uid", "resourceVersion", "creationTimestamp"):
            self.assertNotIn(field, applied["metadata"])
        self.assertIsNotNone(self.oc.lookup("secret", "pull-secret", "scan-1"))
        source = self.oc.lookup("secret", "pull-secret", "openshift-config")
        self.assertEqual(source["metadata"]["uid"], "1234")

    def test_copy_secret_missing_source(self) -> None:
        with self.assertRaises(NotFoundError):
            self.client.copy_secret("absent", "openshift-config", "scan-1")

    def test_current_namespace(self) -> None:
        self.assertEqual(self.client.current_namespace(), "scan-1")
        self.oc.project = None
        self.assertIsNone(self.client.current_namespace())


def test_missing_binary_is_configuration_error() -> None:
    client = OcClient("scanner-deploy-no-such-oc-binary")
    try:
        client.get("job", "x", "y")
    except ConfigurationError as exc:
        assert "not installed" in str(exc)
    else:  # pragma: no cover
        raise AssertionError("expected ConfigurationError")
    assert client.current_namespace() is None


def test_non_executable_binary_is_configuration_error(tmp_path) -> None:
    binary = tmp_path / "oc"
    binary.write_text("#!/bin/sh\nexit 0\n")
    binary.chmod(0o644)
    client = OcClient(str(binary))
    try:
        client.delete("job", "x", "y", ignore_missing=True)
    except ConfigurationError as exc:
        assert str(binary) in str(exc)
    else:  # pragma: no cover
        raise AssertionError("expected ConfigurationError")


def test_subprocess_runner_captures_output() -> None:
    result = subprocess_runner(["sh", "-c", "echo out; echo err >&2; exit 3"])
    assert result.returncode == 3
    assert result.stdout.strip() == "out"
    assert result.detail == "err"
    assert not result.ok


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
