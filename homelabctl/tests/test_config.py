from pathlib import Path

import pytest

from homelabctl.config import (
    CONFIG_TEMPLATE,
    load_config,
    parse_array,
    write_config_template,
)
from homelabctl.errors import ConfigInvalid, ConfigMissing
from homelabctl.modules.charts import ChartDescriptor


def write_env(tmp_path, text):
    path = tmp_path / "config.env"
    path.write_text(text)
    return path


def test_missing_file_raises_config_missing(tmp_path):
    with pytest.raises(ConfigMissing) as exc:
        load_config(tmp_path / "nope.env", tmp_path)
    assert "nope.env" in str(exc.value)
    assert "init-config" in exc.value.remediation
    assert "cp " not in exc.value.remediation


def test_missing_file_suggests_repo_example_when_present(tmp_path):
    (tmp_path / "example.config.env").write_text("GITEA_URL=\n")
    with pytest.raises(ConfigMissing) as exc:
        load_config(tmp_path / "nope.env", tmp_path)
    assert f"cp {tmp_path / 'example.config.env'}" in exc.value.remediation


def test_empty_required_key_raises_config_invalid(tmp_path):
    path = write_env(tmp_path, "GITEA_URL=\nGITEA_NAMESPACE=gitea\n")
    with pytest.raises(ConfigInvalid) as exc:
        load_config(path, tmp_path)
    assert "GITEA_URL" in str(exc.value)


def test_scheme_only_gitea_url_rejected(tmp_path):
    path = write_env(tmp_path, "GITEA_URL=https://\n")
    with pytest.raises(ConfigInvalid) as exc:
        load_config(path, tmp_path)
    assert "GITEA_URL" in str(exc.value)


def test_defaults_applied(tmp_path):
    path = write_env(tmp_path, "GITEA_URL=git.example.com\n")
    config = load_config(path, tmp_path)
    assert config.gitea_namespace == "gitea"
    assert config.kubeconfig == "/etc/rancher/k3s/k3s.yaml"
    assert config.k3s_version == ""
    assert config.api_wait_timeout == 60
    assert config.api_wait_interval == 2
    assert config.manifests_dir == tmp_path / "manifests"
    assert config.issuer_enabled is False


def test_config_is_not_executed(tmp_path):
    marker = tmp_path / "pwned"
    path = write_env(
        tmp_path,
        f"GITEA_URL=git.example.com\n$(touch {marker})\nK3S_VERSION=$HOME\n",
    )
    config = load_config(path, tmp_path)
    assert not marker.exists()
    assert config.k3s_version == "$HOME"


def test_environment_does_not_shadow_file(tmp_path, monkeypatch):
    monkeypatch.setenv("GITEA_NAMESPACE", "from-env")
    path = write_env(tmp_path, "GITEA_URL=git.example.com\n")
    assert load_config(path, tmp_path).gitea_namespace == "gitea"


def test_scheme_stripped_from_gitea_url(tmp_path):
    path = write_env(tmp_path, "GITEA_URL=https://git.example.com/\n")
    assert load_config(path, tmp_path).gitea_url == "git.example.com"


def test_charts_array_parsed(tmp_path):
    path = write_env(
        tmp_path,
        'GITEA_URL=git.example.com\n'
        'CHARTS=("gitea:charts/gitea:gitea:" "cm:jetstack/cert-manager:cert-manager:--set crds.enabled=true")\n',
    )
    config = load_config(path, tmp_path)
    assert config.chart_descriptors() == (
        ChartDescriptor("gitea", "charts/gitea", "gitea", ()),
        ChartDescriptor("cm", "jetstack/cert-manager", "cert-manager", ("--set", "crds.enabled=true")),
    )


def test_default_chart_targets_gitea_url(tmp_path):
    path = write_env(tmp_path, "GITEA_URL=git.example.com\nGITEA_NAMESPACE=code\n")
    (desc,) = load_config(path, tmp_path).chart_descriptors()
    assert desc.release == "gitea"
    assert desc.namespace == "code"
    assert desc.extra_args == ("--set-string", "ingress.host=git.example.com")


def test_helm_repos_parsed(tmp_path):
    path = write_env(
        tmp_path,
        'GITEA_URL=git.example.com\nHELM_REPOS=("jetstack=https://charts.jetstack.io")\n',
    )
    assert load_config(path, tmp_path).helm_repos == (("jetstack", "https://charts.jetstack.io"),)


def test_invalid_helm_repo_entry(tmp_path):
    path = write_env(tmp_path, 'GITEA_URL=git.example.com\nHELM_REPOS=("jetstack")\n')
    with pytest.raises(ConfigInvalid):
        load_config(path, tmp_path)


def test_invalid_number_reports_key(tmp_path):
    path = write_env(tmp_path, "GITEA_URL=git.example.com\nAPI_WAIT_TIMEOUT=soon\n")
    with pytest.raises(ConfigInvalid) as exc:
        load_config(path, tmp_path)
    assert "API_WAIT_TIMEOUT" in str(exc.value)


def test_relative_paths_resolve_against_repo(tmp_path):
    path = write_env(
        tmp_path,
        "GITEA_URL=git.example.com\nSTEP_PROVISIONER_PASSWORD_FILE=secrets/pw\n"
        "STEP_CA_ROOT_FILE=/etc/step/root.crt\n",
    )
    repo = tmp_path / "repo"
    config = load_config(path, repo)
    assert config.step_provisioner_password_file == repo / "secrets" / "pw"
    assert config.step_ca_root_file == Path("/etc/step/root.crt")
    assert config.step_issuer_template == repo / "manifests" / "step-issuer" / "issuer.yaml.tmpl"


def test_config_is_immutable(tmp_path):
    path = write_env(tmp_path, "GITEA_URL=git.example.com\n")
    config = load_config(path, tmp_path)
    with pytest.raises(Exception):
        config.gitea_url = "other"


def test_parse_array_forms():
    assert parse_array('("a:b" "c:d")') == ["a:b", "c:d"]
    assert parse_array("a:b") == ["a:b"]
    assert parse_array("()") == []
    assert parse_array(None) == []


def test_write_template_builtin(tmp_path):
    target = tmp_path / "etc" / "config.env"
    write_config_template(target, tmp_path / "no-repo")
    assert target.read_text() == CONFIG_TEMPLATE


def test_write_template_copies_repo_example(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "example.config.env").write_text("GITEA_URL=example\n")
    target = tmp_path / "config.env"
    write_config_template(target, repo)
    assert target.read_text() == "GITEA_URL=example\n"


def test_write_template_refuses_overwrite(tmp_path):
    target = write_env(tmp_path, "GITEA_URL=keep\n")
    with pytest.raises(FileExistsError):
        write_config_template(target, tmp_path)
    assert target.read_text() == "GITEA_URL=keep\n"
