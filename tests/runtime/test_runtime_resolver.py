import pytest

from fakes import FakeSession
from sshlaunch.errors import RuntimeNotFoundError
from sshlaunch.runtime.providers import (
    DEFAULT_FIXED_PATHS,
    FixedPathProvider,
    RuntimeContext,
    candidate_list,
    default_providers,
)
from sshlaunch.runtime.resolver import RuntimeResolver, expand_env, major_version, parse_version
from sshlaunch.ssh.models import CommandResult

JAVA_17 = CommandResult(0, stderr=b'openjdk version "17.0.2" 2022-01-18\nOpenJDK Runtime Environment\n')
JAVA_7 = CommandResult(0, stderr=b'java version "1.7.0_80"\n')
NOT_FOUND = CommandResult(127, stderr=b"bash: /opt/jdk/bin/java: No such file or directory\n")


@pytest.mark.parametrize(
    "version, major",
    [("1.8.0_292", 8), ("1.7.0_80", 7), ("11.0.2", 11), ("17", 17), ("21-ea", 21), ("beta", None)],
)
def test_major_version(version, major):
    assert major_version(version) == major


def test_parse_version_scans_lines_case_insensitively():
    out = "Picked up JAVA_TOOL_OPTIONS: -Xmx1g\nOpenJDK Version \"11.0.20\" 2023-07-18\n"
    assert parse_version(out) == "11.0.20"
    assert parse_version("command not found") is None


def test_expand_env_supports_both_forms():
    env = {"JAVA_HOME": "/opt/jdk"}
    assert expand_env("$JAVA_HOME/bin/java", env) == "/opt/jdk/bin/java"
    assert expand_env("${JAVA_HOME}/bin/java", env) == "/opt/jdk/bin/java"
    assert expand_env("$UNKNOWN/java", env) == "$UNKNOWN/java"


def test_candidate_order_and_dedup():
    ctx = RuntimeContext(
        remote_dir="/home/agent",
        environment={"JAVA_HOME": "/opt/jdk"},
        tool_locations={"jdk17": "/opt/jdk/", "jdk21": "/opt/jdk21"},
    )
    assert candidate_list(default_providers(), ctx) == [
        "/home/agent/jdk/bin/java",
        "/opt/jdk/bin/java",
        "/opt/jdk21/bin/java",
        *DEFAULT_FIXED_PATHS,
    ]


def test_old_and_missing_runtimes_are_skipped():
    session = FakeSession({
        "/home/agent/jdk/bin/java -version": NOT_FOUND,
        "/opt/jdk/bin/java -version": JAVA_7,
        "java -version": JAVA_17,
    })
    ctx = RuntimeContext("/home/agent", {"JAVA_HOME": "/opt/jdk"})

    assert RuntimeResolver().resolve(session, ctx) == "java"
    assert session.commands == [
        "/home/agent/jdk/bin/java -version",
        "/opt/jdk/bin/java -version",
        "java -version",
    ]


def test_probe_failure_continues_to_next_candidate():
    session = FakeSession({
        "/a/java -version": OSError("channel closed"),
        "/b/java -version": JAVA_17,
    })
    resolver = RuntimeResolver(providers=[FixedPathProvider(["/a/java", "/b/java"])])

    assert resolver.resolve(session, RuntimeContext()) == "/b/java"


def test_jvm_options_are_part_of_the_probe():
    session = FakeSession({"java -Xmx512m -version": JAVA_17})
    resolver = RuntimeResolver(jvm_options="-Xmx512m", providers=[FixedPathProvider(["java"])])

    assert resolver.resolve(session, RuntimeContext()) == "java"


def test_exhaustion_reports_every_tried_path():
    session = FakeSession()
    resolver = RuntimeResolver(providers=[FixedPathProvider(["/a/java", "/b/java"])])

    with pytest.raises(RuntimeNotFoundError) as ei:
        resolver.resolve(session, RuntimeContext())
    assert ei.value.tried_paths == ["/a/java", "/b/java"]


def test_explicit_path_is_expanded_and_version_checked():
    session = FakeSession({"/opt/jdk/bin/java -version": JAVA_17})
    ctx = RuntimeContext("/home/agent", {"JAVA_HOME": "/opt/jdk"})

    assert RuntimeResolver().resolve(session, ctx, "${JAVA_HOME}/bin/java") == "/opt/jdk/bin/java"
    assert session.commands == ["/opt/jdk/bin/java -version"]


def test_explicit_path_below_minimum_fails():
    session = FakeSession({"/opt/old/bin/java -version": JAVA_7})

    with pytest.raises(RuntimeNotFoundError) as ei:
        RuntimeResolver(minimum=8).resolve(session, RuntimeContext(), "/opt/old/bin/java")
    assert ei.value.tried_paths == ["/opt/old/bin/java"]
