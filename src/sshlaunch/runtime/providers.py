# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/runtime/providers.py

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Dict, List, Protocol, Sequence

DEFAULT_FIXED_PATHS = (
    "java",
    "/usr/bin/java",
    "/usr/java/default/bin/java",
    "/usr/java/latest/bin/java",
    "/usr/local/bin/java",
    "/usr/local/java/bin/java",
)


@dataclass
class RuntimeContext:
    """What candidate providers may look at when proposing interpreter paths."""
    remote_dir: str = ""
    environment: Dict[str, str] = field(default_factory=dict)
    tool_locations: Dict[str, str] = field(default_factory=dict)


class CandidateProvider(Protocol):
    def candidates(self, ctx: RuntimeContext) -> List[str]:
        ...


def _java_under(home: str) -> str:
    return posixpath.join(home.rstrip("/") or "/", "bin", "java")


class WorkingDirectoryProvider:
    """A JDK unpacked next to the agent: ``<dir>/jdk/bin/java``."""

    def candidates(self, ctx: RuntimeContext) -> List[str]:
        if not ctx.remote_dir:
            return []
        return [_java_under(posixpath.join(ctx.remote_dir, "jdk"))]


class EnvironmentVariableProvider:
    def __init__(self, name: str = "JAVA_HOME"):
        self.name = name

    def candidates(self, ctx: RuntimeContext) -> List[str]:
        home = ctx.environment.get(self.name)
        return [_java_under(home)] if home else []


class ToolLocationProvider:
    """Installation homes configured per node under ``tool_locations``."""

    def candidates(self, ctx: RuntimeContext) -> List[str]:
        return [_java_under(home) for home in ctx.tool_locations.values() if home]


class FixedPathProvider:
    def __init__(self, paths: Sequence[str] = DEFAULT_FIXED_PATHS):
        self.paths = list(paths)

    def candidates(self, ctx: RuntimeContext) -> List[str]:
        return list(self.paths)


def default_providers() -> List[CandidateProvider]:
    return [
        WorkingDirectoryProvider(),
        EnvironmentVariableProvider("JAVA_HOME"),
        ToolLocationProvider(),
        FixedPathProvider(),
    ]


def candidate_list(providers: Sequence[CandidateProvider], ctx: RuntimeContext) -> List[str]:
    """All providers' candidates in order, first occurrence wins."""
    seen: List[str] = []
    for provider in providers:
        for path in provider.candidates(ctx):
            if path not in seen:
                seen.append(path)
    return seen
