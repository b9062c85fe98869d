import pytest

from homelabctl.config import HomelabConfig

from .fakes import FakeClock, FakeHelm, FakeKube, FakeProbe


@pytest.fixture
def fake_helm():
    return FakeHelm()


@pytest.fixture
def fake_kube():
    return FakeKube()


@pytest.fixture
def fake_probe():
    return FakeProbe()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def repo_dir(tmp_path):
    """A homelab checkout with a valid local Gitea chart."""
    repo = tmp_path / "homelab"
    chart = repo / "charts" / "gitea"
    chart.mkdir(parents=True)
    (chart / "Chart.yaml").write_text("apiVersion: v2\nname: gitea\nversion: 0.1.0\n")
    (repo / ".git").mkdir()
    return repo


@pytest.fixture
def make_config(repo_dir):
    def _make(**overrides):
        values = {
            "GITEA_URL": "git.example.com",
            "MANIFESTS_DIR": repo_dir / "manifests",
            "STEP_ISSUER_TEMPLATE": repo_dir / "manifests" / "step-issuer" / "issuer.yaml.tmpl",
        }
        values.update(overrides)
        return HomelabConfig(**values)
    return _make
