import time
from dataclasses import dataclass

import paramiko
from django.conf import settings

from .exceptions import RemoteCommandError

RECV_CHUNK = 32768
POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    stderr: str
    exit_code: int | None  # None when the server did not report one


def open_session(host: str, port: int, username: str, password: str, timeout: int) -> paramiko.SSHClient:
    """
    Connect and authenticate with a password. Caller closes the client.
    """
    client = paramiko.SSHClient()
    if settings.SSH_STRICT_HOST_KEYS:
        client.load_system_host_keys()
        client.set_missing_host_key_policy(paramiko.RejectPolicy())
    else:
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    try:
        client.connect(
            hostname=host,
            port=port,
            username=username,
            password=password,
            timeout=timeout,
            banner_timeout=timeout,
            auth_timeout=timeout,
            allow_agent=False,
            look_for_keys=False,
        )
    except paramiko.AuthenticationException as e:
        client.close()
        raise RemoteCommandError(f"SSH authentication failed for {username}@{host}") from e
    except Exception:
        client.close()
        raise
    return client


def run_command(client: paramiko.SSHClient, command: str, timeout: int) -> CommandResult:
    """
    Run one command and collect its output. Drains stdout and stderr as data
    arrives, so a command writing heavily to either stream cannot stall on a
    full channel window. Gives up with ``RemoteCommandError`` once ``timeout``
    seconds pass without the command exiting.
    """
    _stdin, stdout, _stderr = client.exec_command(command, timeout=timeout)
    channel = stdout.channel
    out, err = [], []
    deadline = time.monotonic() + timeout
    while True:
        drained = False
        if channel.recv_ready():
            out.append(channel.recv(RECV_CHUNK))
            drained = True
        if channel.recv_stderr_ready():
            err.append(channel.recv_stderr(RECV_CHUNK))
            drained = True
        if drained:
            continue
        if channel.exit_status_ready():
            break
        if time.monotonic() >= deadline:
            raise RemoteCommandError(f"Command did not finish within {timeout}s")
        time.sleep(POLL_INTERVAL)

    status = channel.recv_exit_status()
    return CommandResult(
        stdout=b"".join(out).decode("utf-8", errors="replace"),
        stderr=b"".join(err).decode("utf-8", errors="replace"),
        exit_code=None if status == -1 else status,
    )
