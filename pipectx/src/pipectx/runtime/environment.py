from __future__ import annotations

import getpass
import os
import platform
from collections.abc import Mapping
from dataclasses import asdict, dataclass

ENV_CONFIG_ACTIVE = "PIPECTX_CONFIG_ACTIVE"
DEFAULT_CONFIG_NAME = "default"
UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class EnvironmentSnapshot:
    """Process and host facts captured once per run."""

    config: str
    sysname: str
    user: str
    node: str

    def as_dict(self) -> dict[str, str]:
        return asdict(self)


def capture(environ: Mapping[str, str] | None = None) -> EnvironmentSnapshot:
    """Read the active configuration name, OS family, user and node name."""
    env = os.environ if environ is None else environ
    return EnvironmentSnapshot(
        config=env.get(ENV_CONFIG_ACTIVE) or DEFAULT_CONFIG_NAME,
        sysname=platform.system() or UNKNOWN,
        user=_current_user(),
        node=platform.node() or UNKNOWN,
    )


def _current_user() -> str:
    try:
        return getpass.getuser() or UNKNOWN
    except (KeyError, OSError):
        # no login name and no passwd entry (e.g. bare containers)
        return UNKNOWN
