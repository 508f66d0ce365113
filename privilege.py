"""Acting-user detection and privilege-aware invocation routing."""

from __future__ import annotations

import getpass
from dataclasses import dataclass
from enum import Enum
from typing import List

ROOT_USER = "root"


class InvocationKind(str, Enum):
    DIRECT = "direct"
    SWITCH_DOWN = "runuser"
    ESCALATE = "sudo"
    SWITCH_USER = "sudo-as-user"


@dataclass(frozen=True)
class Invocation:
    kind: InvocationKind
    argv: List[str]


def get_current_user() -> str:
    """Return the acting OS user name, or ``""`` when it cannot be determined."""
    try:
        return getpass.getuser()
    except (OSError, KeyError, ImportError):
        return ""


def resolve_invocation(program: str, cmd: str, user: str, acting_user: str) -> Invocation:
    """Build the argv that runs ``cmd`` through ``program`` as ``user``.

    The branches are evaluated in order:
        - no target user, or the target is the acting user: run directly
        - acting as root: switch down with ``runuser -l``
        - target is root: escalate with ``sudo``
        - anything else: ``sudo -u`` between two unprivileged users
    """
    if not user or user == acting_user:
        return Invocation(InvocationKind.DIRECT, [program, "-c", cmd])
    if acting_user == ROOT_USER:
        return Invocation(InvocationKind.SWITCH_DOWN, ["runuser", "-l", user, "-c", cmd])
    if user == ROOT_USER:
        return Invocation(InvocationKind.ESCALATE, ["sudo", program, "-c", cmd])
    return Invocation(InvocationKind.SWITCH_USER, ["sudo", "-u", user, program, "-c", cmd])
