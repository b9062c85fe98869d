import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from homelabctl.errors import ReleaseFailed
from homelabctl.modules.probe import Fact, OSFamily


class FakeHelm:
    """Records argument vectors instead of running helm."""

    def __init__(self, fail_releases=()):
        self.calls: List[List[str]] = []
        self.releases: Dict[tuple, int] = {}
        self.repos: List[tuple] = []
        self.fail_releases = set(fail_releases)

    def version(self):
        return "v3.14.4"

    def upgrade_install(self, release, chart, namespace, extra_args=()):
        self.calls.append(["upgrade", "--install", release, chart, "--namespace", namespace, *extra_args])
        if release in self.fail_releases:
            raise ReleaseFailed(f"helm upgrade --install {release} failed: boom")
        key = (release, namespace)
        self.releases[key] = self.releases.get(key, 0) + 1

    def release_revision(self, release, namespace):
        return self.releases.get((release, namespace))

    def list_releases(self, namespace):
        return [
            {"name": name, "namespace": ns, "revision": str(rev), "status": "deployed", "chart": name}
            for (name, ns), rev in self.releases.items() if ns == namespace
        ]

    def repo_add(self, name, url):
        self.repos.append((name, url))

    def repo_update(self):
        pass


class FakeKube:
    """In-memory stand-in for KubeClient."""

    def __init__(self, reachable_after: int = 0):
        self.namespaces = set()
        self.secrets: Dict[tuple, Dict[str, str]] = {}
        self.applied: List[dict] = []
        self.secret_ops: List[str] = []
        self.checks = 0
        self.reachable_after = reachable_after

    def api_reachable(self):
        self.checks += 1
        return self.checks > self.reachable_after

    def wait_for_api(self, timeout=60, interval=2, sleep=None, clock=None):
        while not self.api_reachable():
            pass
        return 0.0

    def namespace_exists(self, name):
        return name in self.namespaces

    def ensure_namespace(self, name):
        if name in self.namespaces:
            return False
        self.namespaces.add(name)
        return True

    def replace_secret(self, name, namespace, data):
        if (name, namespace) in self.secrets:
            self.secret_ops.append("delete")
        self.secret_ops.append("create")
        self.secrets[(name, namespace)] = dict(data)

    def apply_documents(self, docs, source="<inline>"):
        applied = []
        for doc in docs:
            if doc:
                self.applied.append(doc)
                applied.append(f"{doc['kind']}/{doc['metadata']['name']}")
        return applied

    def apply_manifest(self, path):
        import yaml
        with open(path) as f:
            return self.apply_documents(list(yaml.safe_load_all(f)), source=str(path))


class FakeProbe:
    def __init__(self, tools=("git", "curl", "helm", "k3s"), os_family=OSFamily.UBUNTU,
                 k3s_active=Fact.YES, interactive=False, root=True):
        self.tools = set(tools)
        self.os_family = os_family
        self.k3s_active = k3s_active
        self.interactive = interactive
        self.root = root
        self.ports: Dict[int, Fact] = {}
        self.addresses: Dict[str, Fact] = {}

    def detect_os(self):
        return self.os_family

    def tool_available(self, name):
        return name in self.tools

    def port_free(self, port):
        return self.ports.get(port, Fact.YES)

    def service_active(self, name):
        return self.k3s_active

    def address_on_interface(self, address):
        return self.addresses.get(address, Fact.NO)

    def is_root(self):
        return self.root

    def is_interactive(self):
        return self.interactive


class FakeClock:
    """Clock that only advances when sleep is called."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingRunner:
    """Command runner that records argv and returns canned results."""

    def __init__(self, results: Optional[Dict[str, subprocess.CompletedProcess]] = None):
        self.calls: List[List[str]] = []
        self.kwargs: List[dict] = []
        self.results = results or {}

    def __call__(self, cmd, **kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        self.kwargs.append(kwargs)
        result = self.results.get(" ".join(cmd[:2]), self.results.get(cmd[0]))
        if isinstance(result, Exception):
            raise result
        return result or subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


def write_file(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path
