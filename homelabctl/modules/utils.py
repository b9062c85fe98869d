"""Subprocess helpers shared by the host, Helm and reset modules."""
import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger("homelabctl.utils")

# Flags whose following argument must never reach the logs
SENSITIVE_FLAGS = ("--password", "--token", "--from-literal")


def redact_command(cmd: Sequence[str]) -> List[str]:
    """Return a copy of cmd with values of sensitive flags replaced.

    Handles both ``--password value`` and ``--password=value``.
    """
    redacted = []
    hide_next = False
    for arg in cmd:
        if hide_next:
            redacted.append("[REDACTED]")
            hide_next = False
            continue
        flag, sep, _ = arg.partition("=")
        if flag in SENSITIVE_FLAGS:
            if sep:
                redacted.append(f"{flag}=[REDACTED]")
            else:
                redacted.append(arg)
                hide_next = True
            continue
        redacted.append(arg)
    return redacted


def run_command(
    cmd: Sequence[str],
    *,
    check: bool = True,
    capture_output: bool = False,
    cwd: Optional[Path] = None,
    env: Optional[Dict[str, str]] = None,
    input: Optional[str] = None,
) -> subprocess.CompletedProcess:
    """Run an external command with an explicit argument vector.

    Args:
        cmd: Program and arguments, each a separate element
        check: Raise CalledProcessError on a non-zero exit code
        capture_output: Capture stdout/stderr as text
        cwd: Working directory for the child only
        env: Complete environment for the child (inherits ours when None)
        input: Text fed to the child's stdin

    Returns:
        The completed process
    """
    cmd = list(cmd)
    cmd_str = ' '.join(redact_command(cmd))
    logger.debug(f"💻 Running: {cmd_str}")
    try:
        result = subprocess.run(
            cmd,
            check=check,
            text=True,
            cwd=str(cwd) if cwd else None,
            env=env,
            input=input,
            stdout=subprocess.PIPE if capture_output else None,
            stderr=subprocess.PIPE if capture_output else None,
        )
        if capture_output:
            logger.debug(f"🟢 Output:\n{result.stdout}")
        return result
    except subprocess.CalledProcessError as e:
        msg = f"❌ Command failed: {cmd_str} (exit code: {e.returncode})"
        if capture_output:
            msg += f"\nStdout:\n{e.stdout}\nStderr:\n{e.stderr}"
        logger.error(msg)
        raise


def command_error_text(error: subprocess.CalledProcessError) -> str:
    """Best-effort one-line reason for a failed command."""
    for stream in (error.stderr, error.stdout):
        if stream and stream.strip():
            return stream.strip().splitlines()[-1]
    return f"exit code {error.returncode}"
