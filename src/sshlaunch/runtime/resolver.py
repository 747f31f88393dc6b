# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/runtime/resolver.py

from __future__ import annotations

import logging
import re
from string import Template
from typing import Dict, List, Optional, Sequence

import paramiko

from sshlaunch.errors import RuntimeNotFoundError
from sshlaunch.ssh.session import TransportSession
from .providers import CandidateProvider, RuntimeContext, candidate_list, default_providers

log = logging.getLogger("sshlaunch")

DEFAULT_MIN_VERSION = 8
VERSION_PROBE_TIMEOUT = 60

_VERSION_LINE = re.compile(r'\b[\w-]+ version "([^"]+)"', re.IGNORECASE)
_LEADING = re.compile(r"^(\d+)(?:\.(\d+))?")


def expand_env(value: str, environment: Dict[str, str]) -> str:
    """Expand ``$VAR`` and ``${VAR}``; unknown names are left as written."""
    return Template(value).safe_substitute(environment)


def parse_version(output: str) -> Optional[str]:
    for line in output.splitlines():
        m = _VERSION_LINE.search(line)
        if m:
            return m.group(1)
    return None


def major_version(version: str) -> Optional[int]:
    """
    >>> major_version("1.8.0_292"), major_version("11.0.2"), major_version("21-ea")
    (8, 11, 21)
    """
    m = _LEADING.match(version.strip())
    if not m:
        return None
    major = int(m.group(1))
    if major == 1 and m.group(2) is not None:
        return int(m.group(2))
    return major


class RuntimeResolver:
    def __init__(
        self,
        *,
        jvm_options: str = "",
        minimum: int = DEFAULT_MIN_VERSION,
        providers: Optional[Sequence[CandidateProvider]] = None,
        label: str = "",
    ):
        self.jvm_options = jvm_options
        self.minimum = minimum
        self.providers = list(providers) if providers is not None else default_providers()
        self.label = label

    def probe(self, session: TransportSession, candidate: str) -> Optional[int]:
        """Major version reported by ``candidate``, or None if it is unusable."""
        cmd = " ".join(p for p in (candidate, self.jvm_options.strip(), "-version") if p)
        log.info("[%s] Checking java version of %s", self.label, candidate)
        try:
            result = session.run(cmd, timeout=VERSION_PROBE_TIMEOUT)
        except (paramiko.SSHException, OSError) as e:
            log.info("[%s] Failed to run %s: %s", self.label, cmd, e)
            return None

        output = result.output
        version = parse_version(output)
        if version is None:
            log.debug("[%s] No version line in output of %s:\n%s", self.label, cmd, output)
            return None
        major = major_version(version)
        if major is None:
            log.info("[%s] Unparseable java version %r from %s", self.label, version, candidate)
            return None
        log.info("[%s] %s reports java version %s", self.label, candidate, version)
        if major < self.minimum:
            log.info("[%s] %s is older than the minimum supported %d", self.label, candidate, self.minimum)
            return None
        return major

    def resolve(self, session: TransportSession, ctx: RuntimeContext, explicit: str = "") -> str:
        if explicit:
            path = expand_env(explicit, ctx.environment)
            if self.probe(session, path) is None:
                raise RuntimeNotFoundError([path], minimum=self.minimum)
            return path

        tried: List[str] = []
        for candidate in candidate_list(self.providers, ctx):
            tried.append(candidate)
            if self.probe(session, candidate) is not None:
                return candidate
        raise RuntimeNotFoundError(tried, minimum=self.minimum)
