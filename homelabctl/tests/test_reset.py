import pytest

from homelabctl.errors import ResetRefused
from homelabctl.modules.reset import ResetController, ResetMode, confirm_destructive

from .fakes import RecordingRunner, write_file


@pytest.fixture
def host(tmp_path):
    script = write_file(tmp_path / "bin" / "k3s-uninstall.sh", "#!/bin/sh\nexit 0\n")
    script.chmod(0o755)
    data = [tmp_path / "var-lib-k3s", tmp_path / "etc-k3s"]
    for d in data:
        write_file(d / "state", "x")
    repo = tmp_path / "homelab"
    write_file(repo / "README.md", "x")
    config = write_file(tmp_path / "etc" / "config.env", "GITEA_URL=x\n")
    return {"script": script, "data": data, "repo": repo, "config": config}


def controller(host, runner, **kwargs):
    return ResetController(
        repo_dir=host["repo"],
        config_file=host["config"],
        runner=runner,
        uninstall_script=host["script"],
        data_dirs=host["data"],
        **kwargs,
    )


def test_non_interactive_without_force_refuses(host):
    runner = RecordingRunner()
    prompts = []
    ctl = controller(host, runner, interactive=False, prompt=prompts.append)

    with pytest.raises(ResetRefused) as exc:
        ctl.run(ResetMode.HARD)

    assert "--force" in exc.value.remediation
    assert runner.calls == []
    assert prompts == []
    assert all(d.exists() for d in host["data"])
    assert host["repo"].exists() and host["config"].exists()


def test_force_runs_destructive_action_once_without_prompt(host):
    runner = RecordingRunner()
    prompts = []
    ctl = controller(host, runner, force=True, interactive=True, prompt=prompts.append)

    ctl.run(ResetMode.SOFT)

    assert runner.calls == [[str(host["script"])]]
    assert prompts == []
    assert not any(d.exists() for d in host["data"])
    assert host["repo"].exists() and host["config"].exists()


def test_hard_reset_removes_repo_and_config(host):
    ctl = controller(host, RecordingRunner(), force=True)
    removed = ctl.run(ResetMode.HARD)
    assert host["repo"] in removed and host["config"] in removed
    assert not host["repo"].exists()
    assert not host["config"].exists()


def test_interactive_prompt_declined(host):
    runner = RecordingRunner()
    ctl = controller(host, runner, interactive=True, prompt=lambda q: False)
    with pytest.raises(ResetRefused):
        ctl.run(ResetMode.SOFT)
    assert runner.calls == []


def test_interactive_prompt_accepted(host):
    runner = RecordingRunner()
    questions = []

    def yes(question):
        questions.append(question)
        return True

    controller(host, runner, interactive=True, prompt=yes).run(ResetMode.SOFT)
    assert len(questions) == 1
    assert len(runner.calls) == 1


def test_missing_uninstaller_is_skipped(host):
    host["script"].unlink()
    runner = RecordingRunner()
    controller(host, runner, force=True).run(ResetMode.SOFT)
    assert runner.calls == []
    assert not any(d.exists() for d in host["data"])


def test_confirm_destructive_policy():
    confirm_destructive("q", force=True, interactive=False)
    with pytest.raises(ResetRefused):
        confirm_destructive("q", force=False, interactive=False, prompt=lambda q: True)
    confirm_destructive("q", force=False, interactive=True, prompt=lambda q: True)
