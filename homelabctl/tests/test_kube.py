import base64
from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.rest import ApiException

from homelabctl.errors import ApiUnreachable
from homelabctl.modules.kube import KubeClient, wait_until_reachable


def test_wait_succeeds_after_three_intervals(fake_clock):
    answers = iter([False, False, False, True])

    elapsed = wait_until_reachable(
        lambda: next(answers), timeout=60, interval=2, sleep=fake_clock.sleep, clock=fake_clock
    )

    assert elapsed == 6
    assert fake_clock.sleeps == [2, 2, 2]


def test_wait_fails_exactly_at_budget(fake_clock):
    checks = []

    def never():
        checks.append(fake_clock.now)
        return False

    with pytest.raises(ApiUnreachable) as exc:
        wait_until_reachable(never, timeout=60, interval=2, sleep=fake_clock.sleep, clock=fake_clock)

    assert fake_clock.now == 60
    assert sum(fake_clock.sleeps) == 60
    assert checks[-1] == 60
    assert len(checks) == 31
    assert "60s" in str(exc.value)


def test_wait_never_oversleeps_budget(fake_clock):
    with pytest.raises(ApiUnreachable):
        wait_until_reachable(lambda: False, timeout=5, interval=2, sleep=fake_clock.sleep, clock=fake_clock)
    assert fake_clock.sleeps == [2, 2, 1]


def test_api_reachable_false_without_kubeconfig(tmp_path):
    kube = KubeClient(str(tmp_path / "missing.yaml"))
    assert kube.api_reachable() is False


def make_client(core):
    kube = KubeClient("/unused")
    kube._api_client = MagicMock()
    patcher = patch("homelabctl.modules.kube.client.CoreV1Api", return_value=core)
    return kube, patcher


def test_ensure_namespace_creates_when_absent():
    core = MagicMock()
    core.read_namespace.side_effect = ApiException(status=404)
    kube, patcher = make_client(core)
    with patcher:
        assert kube.ensure_namespace("gitea") is True
    body = core.create_namespace.call_args[0][0]
    assert body.metadata.name == "gitea"


def test_ensure_namespace_existing_is_noop():
    core = MagicMock()
    kube, patcher = make_client(core)
    with patcher:
        assert kube.ensure_namespace("gitea") is False
    core.create_namespace.assert_not_called()


def test_ensure_namespace_conflict_is_idempotent():
    core = MagicMock()
    core.read_namespace.side_effect = ApiException(status=404)
    core.create_namespace.side_effect = ApiException(status=409)
    kube, patcher = make_client(core)
    with patcher:
        assert kube.ensure_namespace("gitea") is False


def test_replace_secret_deletes_then_creates():
    core = MagicMock()
    kube, patcher = make_client(core)
    with patcher:
        kube.replace_secret("pw", "step-issuer", {"password": b"s3cret"})
    names = [c[0] for c in core.method_calls]
    assert names == ["delete_namespaced_secret", "create_namespaced_secret"]
    body = core.create_namespaced_secret.call_args[0][1]
    assert body.data == {"password": "czNjcmV0"}
    assert body.string_data is None


def test_replace_secret_ignores_missing_secret():
    core = MagicMock()
    core.delete_namespaced_secret.side_effect = ApiException(status=404)
    kube, patcher = make_client(core)
    with patcher:
        kube.replace_secret("pw", "step-issuer", {"password": b"s3cret"})
    core.create_namespaced_secret.assert_called_once()


def test_apply_documents_patches_on_conflict():
    resource = MagicMock(namespaced=True)
    resource.create.side_effect = ApiException(status=409)
    dyn = MagicMock()
    dyn.resources.get.return_value = resource
    kube = KubeClient("/unused")
    kube._api_client = MagicMock()
    doc = {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "cm", "namespace": "gitea"}}

    with patch("homelabctl.modules.kube.DynamicClient", return_value=dyn):
        applied = kube.apply_documents([doc, None, {"kind": "NoApiVersion"}])

    assert applied == ["ConfigMap/cm"]
    resource.patch.assert_called_once()
    assert resource.patch.call_args.kwargs["namespace"] == "gitea"
    assert resource.patch.call_args.kwargs["content_type"] == "application/merge-patch+json"


def test_apply_documents_cluster_scoped_has_no_namespace():
    resource = MagicMock(namespaced=False)
    dyn = MagicMock()
    dyn.resources.get.return_value = resource
    kube = KubeClient("/unused")
    kube._api_client = MagicMock()
    doc = {"apiVersion": "cert-manager.io/v1", "kind": "ClusterIssuer", "metadata": {"name": "ca"}}

    with patch("homelabctl.modules.kube.DynamicClient", return_value=dyn):
        kube.apply_documents([doc])

    assert resource.create.call_args.kwargs["namespace"] is None


def test_replace_secret_encodes_binary_values():
    core = MagicMock()
    kube, patcher = make_client(core)
    with patcher:
        kube.replace_secret("pw", "step-issuer", {"ca.crt": b"\x30\x82\x01\xff"})
    body = core.create_namespaced_secret.call_args[0][1]
    assert base64.b64decode(body.data["ca.crt"]) == b"\x30\x82\x01\xff"
