"""API key lookup from env or macOS Keychain."""

from __future__ import annotations

import os
import subprocess

from .errors import ConfigurationError


def get_env_or_keychain(
    env_var: str,
    keychain_service: str,
    user_env: str = "USER",
    allow_missing: bool = False,
) -> str | None:
    """Return env var if set, else fall back to a Keychain lookup."""
    value = os.environ.get(env_var)
    if value:
        return value

    cmd = ["security", "find-generic-password", "-s", keychain_service]
    user = os.environ.get(user_env, "")
    if user:
        cmd += ["-a", user]
    cmd.append("-w")

    try:
        output = subprocess.check_output(cmd, text=True, timeout=5).strip()
    except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired):
        output = ""

    if output:
        return output
    if allow_missing:
        return None

    raise ConfigurationError(
        env_var,
        "not set. Export it or add it to Keychain: "
        f"security add-generic-password -s '{keychain_service}' -a \"$USER\" -w '<KEY>'",
    )


def get_api_key() -> str:
    """Congress.gov API key."""
    return get_env_or_keychain("CONGRESS_API_KEY", "congress-api")
