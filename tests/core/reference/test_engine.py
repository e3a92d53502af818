from __future__ import annotations

from typing import Callable, Sequence

from refbuild.core.filtered_log import FilteredLog
from refbuild.core.graph import BranchHead, Build, JobGraph
from refbuild.core.reference.configuration import ReferenceConfiguration
from refbuild.core.reference.engine import NO_REFERENCE_BUILD, ReferenceBuild, ResolutionEngine
from refbuild.core.reference.matchers import AcceptAllMatcher

MULTI_BRANCH = "Found a `MultiBranchProject`, trying to resolve the target branch from the configuration"
NOT_FOUND = "No reference build with required status found that contains matching commits"


class _Matcher:
    """Commit matcher that rejects selected build ids and records every call."""

    def __init__(self, rejected: Sequence[str] = (), on_call: Callable[[], None] | None = None) -> None:
        self.rejected = set(rejected)
        self.calls: list[tuple[str, str]] = []
        self.on_call = on_call

    def is_related(self, candidate: Build, originating: Build) -> bool:
        self.calls.append((candidate.id, originating.id))
        if self.on_call is not None:
            self.on_call()
        return candidate.id not in self.rejected


def _multibranch(*, pr_target: str | None = "pr-target") -> tuple[JobGraph, Build]:
    graph = JobGraph()
    graph.add_container("project", multibranch=True)
    graph.add_job(
        "project/PR-1",
        display_name="PR-1",
        container="project",
        branch=BranchHead("PR-1", target=pr_target),
    )
    current = graph.add_build("project/PR-1", 1, result="SUCCESS", build_id="pr-build", display_name="pr-build")
    return graph, current


def _branch(
    graph: JobGraph,
    name: str,
    builds: Sequence[tuple[str, str | None, bool]],
    *,
    primary: bool = False,
) -> None:
    """Register a branch job with builds given oldest first as (id, result, building)."""
    job_name = f"project/{name}"
    graph.add_job(job_name, display_name=name, container="project", branch=BranchHead(name), primary=primary)
    for number, (build_id, result, building) in enumerate(builds, start=1):
        graph.add_build(job_name, number, result=result, building=building, build_id=build_id, display_name=build_id)


def _resolve(
    graph: JobGraph,
    build: Build,
    configuration: ReferenceConfiguration | None = None,
    matcher: object | None = None,
) -> tuple[ReferenceBuild, list[str]]:
    engine = ResolutionEngine.from_graph(graph, matcher or AcceptAllMatcher(), configuration)  # type: ignore[arg-type]
    trail = FilteredLog("EMPTY")
    reference = engine.find_reference_build(build, trail)
    return reference, trail.info_messages


def _assert_in_order(messages: list[str], expected: Sequence[str]) -> None:
    position = 0
    for text in expected:
        assert text in messages[position:], f"{text!r} missing after position {position}: {messages}"
        position = messages.index(text, position) + 1


def test_pull_request_target_is_used_as_reference_job() -> None:
    graph, current = _multibranch()
    _branch(graph, "pr-target", [("pr-id", "SUCCESS", False)])

    reference, messages = _resolve(graph, current)

    _assert_in_order(
        messages,
        [
            "No reference job configured",
            MULTI_BRANCH,
            "-> no target branch configured",
            "-> detected a pull or merge request for target branch 'pr-target'",
            "-> inferred job for target branch: 'pr-target'",
            "Found reference build 'pr-id' for target branch",
            "-> Build 'pr-id' has a result SUCCESS",
        ],
    )
    assert reference.reference_build_id == "pr-id"
    assert reference.reference_job_name == "project/pr-target"
    assert reference.owner == "pr-build"
    assert reference.messages == tuple(messages)


def test_predecessor_with_matching_result_is_used() -> None:
    graph, current = _multibranch()
    _branch(graph, "pr-target", [("successful", "SUCCESS", False), ("pr-id", "FAILURE", False)])

    reference, messages = _resolve(graph, current)

    _assert_in_order(
        messages,
        [
            "-> inferred job for target branch: 'pr-target'",
            "Found reference build 'pr-id' for target branch",
            "-> Previous build 'successful' has a result SUCCESS",
        ],
    )
    assert reference.reference_build_id == "successful"


def test_no_reference_when_whole_history_fails() -> None:
    graph, current = _multibranch()
    _branch(graph, "pr-target", [("failure", "FAILURE", False), ("pr-id", "FAILURE", False)])

    reference, messages = _resolve(graph, current)

    _assert_in_order(
        messages,
        [
            "Found reference build 'pr-id' for target branch",
            "-> ignoring reference build 'pr-id' or one of its predecessors "
            "since none have a result of UNSTABLE or better",
            NOT_FOUND,
        ],
    )
    assert not reference.has_reference_build
    assert reference.reference_build_id_or_dash == NO_REFERENCE_BUILD


def test_running_builds_are_ignored_unless_enabled() -> None:
    graph, current = _multibranch()
    _branch(graph, "target", [("target-id", "SUCCESS", True)])
    configuration = ReferenceConfiguration(target_branch="target")

    reference, messages = _resolve(graph, current, configuration)

    _assert_in_order(
        messages,
        [
            "-> using target branch 'target' as configured",
            "-> inferred job for target branch: 'target'",
            "No completed build found for reference job 'target'",
        ],
    )
    assert reference.reference_build_id_or_dash == "-"

    configuration.set_consider_running_build(True)
    reference, messages = _resolve(graph, current, configuration)

    assert "-> Build 'target-id' has a result SUCCESS" in messages
    assert reference.reference_build_id == "target-id"


def test_configured_target_has_precedence_before_pull_request_target() -> None:
    graph, current = _multibranch()
    _branch(graph, "pr-target", [("pr-id", "SUCCESS", False)])
    _branch(graph, "target", [("target-id", "SUCCESS", False)])

    reference, messages = _resolve(graph, current, ReferenceConfiguration(target_branch="target"))

    assert "-> detected a pull or merge request for target branch 'pr-target'" not in messages
    assert "-> no target branch configured" not in messages
    assert reference.reference_build_id == "target-id"


def test_configured_target_has_precedence_before_primary_branch() -> None:
    graph, current = _multibranch(pr_target=None)
    _branch(graph, "main", [("main-id", "SUCCESS", False)], primary=True)
    _branch(graph, "target", [("target-id", "SUCCESS", False)])

    reference, messages = _resolve(graph, current, ReferenceConfiguration(target_branch="target"))

    _assert_in_order(
        messages,
        [
            "No reference job configured",
            MULTI_BRANCH,
            "-> using target branch 'target' as configured",
            "-> inferred job for target branch: 'target'",
            "Found reference build 'target-id' for target branch",
            "-> Build 'target-id' has a result SUCCESS",
        ],
    )
    assert reference.reference_build_id == "target-id"


def test_primary_branch_is_used_without_pull_request() -> None:
    graph, current = _multibranch(pr_target=None)
    _branch(graph, "main", [("main-id", "SUCCESS", False)], primary=True)

    reference, messages = _resolve(graph, current)

    _assert_in_order(
        messages,
        [
            "-> no target branch configured",
            "-> using configured primary branch 'main' of SCM as target branch",
            "Found reference build 'main-id' for target branch",
            "-> Build 'main-id' has a result SUCCESS",
        ],
    )
    assert reference.reference_build_id == "main-id"


def test_primary_branch_in_nested_folder_is_used() -> None:
    graph, current = _multibranch(pr_target=None)
    graph.add_container("project/branches", parent="project")
    graph.add_job(
        "project/branches/main",
        display_name="main",
        container="project/branches",
        branch=BranchHead("main"),
        primary=True,
    )
    graph.add_build("project/branches/main", 1, result="SUCCESS", build_id="main-id", display_name="main-id")

    reference, messages = _resolve(graph, current)

    _assert_in_order(
        messages,
        [
            "-> using configured primary branch 'main' of SCM as target branch",
            "-> inferred job for target branch: 'main'",
            "Found reference build 'main-id' for target branch",
            "-> Build 'main-id' has a result SUCCESS",
        ],
    )
    assert "No reference job found for target branch 'main'" not in messages
    assert reference.reference_job_name == "project/branches/main"
    assert reference.reference_build_id == "main-id"


def test_falls_back_to_master_for_plain_branches() -> None:
    graph, current = _multibranch(pr_target=None)
    _branch(graph, "develop", [("develop-id", "SUCCESS", False)])

    reference, messages = _resolve(graph, current)

    _assert_in_order(
        messages,
        [
            MULTI_BRANCH,
            "-> falling back to plugin default target branch 'master'",
            "No reference job found for target branch 'master'",
        ],
    )
    assert not reference.has_reference_build


def test_default_branch_job_is_found_when_present() -> None:
    graph, current = _multibranch(pr_target=None)
    _branch(graph, "master", [("master-id", "UNSTABLE", False)])

    reference, _ = _resolve(graph, current)

    assert reference.reference_build_id == "master-id"


def test_job_outside_multibranch_without_reference_job_has_no_reference() -> None:
    graph = JobGraph()
    graph.add_container("folder")
    graph.add_job("folder/app")
    current = graph.add_build("folder/app", 1, result="SUCCESS")

    reference, messages = _resolve(graph, current)

    assert messages == ["No reference job configured"]
    assert reference == ReferenceBuild(owner="folder/app#1", messages=("No reference job configured",))


def test_configured_reference_job_is_used_directly() -> None:
    graph = JobGraph()
    graph.add_job("app")
    graph.add_job("app-nightly", display_name="nightly")
    graph.add_build("app-nightly", 4, result="SUCCESS", build_id="nightly-4", display_name="nightly-4")
    current = graph.add_build("app", 1, result="FAILURE")

    reference, messages = _resolve(graph, current, ReferenceConfiguration(reference_job="app-nightly"))

    _assert_in_order(
        messages,
        [
            "Using configured reference job 'nightly'",
            "Found reference build 'nightly-4' for target branch",
            "-> Build 'nightly-4' has a result SUCCESS",
        ],
    )
    assert "No reference job configured" not in messages
    assert reference.reference_build_id == "nightly-4"


def test_unknown_configured_reference_job_yields_empty_result() -> None:
    graph, current = _multibranch()
    _branch(graph, "pr-target", [("pr-id", "SUCCESS", False)])

    reference, messages = _resolve(graph, current, ReferenceConfiguration(reference_job="missing"))

    assert messages == ["Configured reference job 'missing' does not exist"]
    assert not reference.has_reference_build


def test_commit_mismatch_stops_the_search() -> None:
    graph, current = _multibranch()
    _branch(graph, "pr-target", [("older", "SUCCESS", False), ("pr-id", "SUCCESS", False)])
    matcher = _Matcher(rejected=["pr-id"])

    reference, messages = _resolve(graph, current, matcher=matcher)

    assert matcher.calls == [("pr-id", "pr-build")]
    _assert_in_order(
        messages,
        ["-> build 'pr-id' does not contain commits of the current build", NOT_FOUND],
    )
    assert "Found reference build 'pr-id' for target branch" not in messages
    assert not reference.has_reference_build


def test_latest_build_is_used_when_configured_and_nothing_qualifies() -> None:
    graph, current = _multibranch()
    _branch(graph, "pr-target", [("failure", "FAILURE", False), ("pr-id", "ABORTED", False)])
    configuration = ReferenceConfiguration(latest_build_if_not_found=True)

    reference, messages = _resolve(graph, current, configuration)

    _assert_in_order(messages, [NOT_FOUND, "-> using latest build 'pr-id' of reference job 'pr-target'"])
    assert reference.reference_build_id == "pr-id"


def test_resolution_is_idempotent() -> None:
    graph, current = _multibranch()
    _branch(graph, "pr-target", [("successful", "SUCCESS", False), ("pr-id", "FAILURE", False)])
    engine = ResolutionEngine.from_graph(graph, AcceptAllMatcher())

    first_log = FilteredLog("first")
    second_log = FilteredLog("second")
    first = engine.find_reference_build(current, first_log)
    second = engine.find_reference_build(current, second_log)

    assert first == second
    assert first_log.info_messages == second_log.info_messages


def test_configuration_changes_during_resolution_do_not_leak_in() -> None:
    graph, current = _multibranch()
    _branch(graph, "pr-target", [("failure", "FAILURE", False), ("pr-id", "FAILURE", False)])
    configuration = ReferenceConfiguration()
    matcher = _Matcher(on_call=lambda: configuration.set_required_result("FAILURE"))

    reference, messages = _resolve(graph, current, configuration, matcher)

    assert not reference.has_reference_build
    assert configuration.required_result.value == "FAILURE"
    assert any("result of UNSTABLE or better" in message for message in messages)


def test_resolution_does_not_modify_the_graph() -> None:
    graph, current = _multibranch()
    _branch(graph, "pr-target", [("successful", "SUCCESS", False), ("pr-id", "FAILURE", False)])
    before = [(job.name, [build for build in job.history]) for job in graph.jobs]

    _resolve(graph, current)

    assert [(job.name, [build for build in job.history]) for job in graph.jobs] == before


def test_reference_build_payload_and_lookup() -> None:
    graph, current = _multibranch()
    _branch(graph, "pr-target", [("pr-id", "SUCCESS", False)])
    reference, _ = _resolve(graph, current)

    payload = reference.to_payload()
    empty = ReferenceBuild.from_payload({"owner": "x", "reference_build_id": NO_REFERENCE_BUILD})

    assert ReferenceBuild.from_payload(payload) == reference
    assert reference.find_reference_build(graph) == graph.find_build("pr-id")
    assert empty.find_reference_build(graph) is None
    assert not empty.has_reference_build
