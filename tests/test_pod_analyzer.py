import pytest

from aegis.analysis import AnalysisResult, Event, Failure, Info, Warning
from aegis.pod_analyzer import (
    ANSWER_FORMAT,
    FAILURE_SECTION,
    INFO_SECTION,
    POD_DIAGNOSIS_HEADER,
    WARNING_SECTION,
    PodAnalyzer,
    analyze_container_status_failures,
    is_error_reason,
    is_event_error_reason,
    pod_event_warning,
)


def _event(reason="", message="", type_="Warning", count=1):
    return Event(type=type_, timestamps="2024-01-01T00:00:00Z", reason=reason, message=message, count=count)


class FakeSource:
    def __init__(self, pod, events=None, latest=None, logs=None, parent=None, events_error=None):
        self.pod = pod
        self.events = events or []
        self.latest = latest
        self.logs = logs or {}
        self.parent = parent
        self.events_error = events_error
        self.log_calls = []

    def get_pod(self, namespace, name):
        if self.pod is None:
            raise LookupError(f"pods {name} not found")
        return self.pod

    def get_events(self, kind, namespace, name, event_type, time_range):
        if self.events_error is not None:
            raise self.events_error
        return self.events

    def latest_event(self, namespace, name):
        return self.latest

    def get_container_logs(self, namespace, pod_name, container, tail_lines):
        self.log_calls.append((container, tail_lines))
        value = self.logs.get(container, [])
        if isinstance(value, Exception):
            raise value
        return value

    def get_parent(self, pod):
        return self.parent


def _pod(phase="Running", containers=(), statuses=(), init_containers=(), init_statuses=(), conditions=()):
    return {
        "metadata": {"name": "web", "namespace": "test"},
        "spec": {
            "containers": [{"name": n} for n in containers],
            "initContainers": [{"name": n} for n in init_containers],
        },
        "status": {
            "phase": phase,
            "conditions": list(conditions),
            "containerStatuses": list(statuses),
            "initContainerStatuses": list(init_statuses),
        },
    }


def _no_event():
    return None


@pytest.mark.parametrize(
    "reason,expected",
    [("CrashLoopBackOff", True), ("ErrImagePull", True), ("InvalidImageName", True), ("Running", False), ("", False)],
)
def test_is_error_reason(reason, expected):
    assert is_error_reason(reason) is expected


@pytest.mark.parametrize(
    "reason,expected",
    [("FailedMount", True), ("FailedCreatePodSandBox", True), ("Unhealthy", False)],
)
def test_is_event_error_reason(reason, expected):
    assert is_event_error_reason(reason) is expected


def test_crash_loop_with_last_termination():
    statuses = [
        {
            "name": "app",
            "state": {"waiting": {"reason": "CrashLoopBackOff", "message": "back-off"}},
            "lastState": {"terminated": {"reason": "OOMKilled", "exitCode": 137}},
        }
    ]
    failures = analyze_container_status_failures(statuses, "web", "Running", _no_event)
    assert [f.text for f in failures] == [
        "the last termination reason is OOMKilled container=app pod=web"
    ]


def test_waiting_error_reason_uses_message():
    statuses = [{"name": "app", "state": {"waiting": {"reason": "ErrImagePull", "message": "pull denied"}}}]
    failures = analyze_container_status_failures(statuses, "web", "Pending", _no_event)
    assert [f.text for f in failures] == ["pull denied"]
    assert failures[0].sensitive == []


def test_waiting_error_reason_without_message_is_ignored():
    statuses = [{"name": "app", "state": {"waiting": {"reason": "ErrImagePull"}}}]
    assert analyze_container_status_failures(statuses, "web", "Pending", _no_event) == []


def test_terminated_failed_pod():
    statuses = [
        {"name": "app", "ready": False, "state": {"terminated": {"reason": "Error", "exitCode": 1}}}
    ]
    failures = analyze_container_status_failures(statuses, "web", "Failed", _no_event)
    assert [f.text for f in failures] == ["termination reason is Error exitcode=1 container=app pod=web"]


def test_terminated_outside_failed_phase_is_ignored():
    statuses = [
        {"name": "app", "ready": False, "state": {"terminated": {"reason": "Error", "exitCode": 1}}}
    ]
    assert analyze_container_status_failures(statuses, "web", "Running", _no_event) == []


def test_container_creating_uses_event():
    statuses = [{"name": "app", "state": {"waiting": {"reason": "ContainerCreating"}}}]
    event = _event(reason="FailedMount", message="volume missing")
    failures = analyze_container_status_failures(statuses, "web", "Pending", lambda: event)
    assert [f.text for f in failures] == ["volume missing"]


def test_container_creating_with_harmless_event():
    statuses = [{"name": "app", "state": {"waiting": {"reason": "ContainerCreating"}}}]
    event = _event(reason="Pulling", message="pulling image")
    assert analyze_container_status_failures(statuses, "web", "Pending", lambda: event) == []


def test_event_lookup_error_is_skipped():
    def boom():
        raise RuntimeError("api down")

    statuses = [
        {"name": "a", "state": {"waiting": {"reason": "ContainerCreating"}}},
        {"name": "b", "state": {"waiting": {"reason": "ErrImagePull", "message": "pull denied"}}},
    ]
    failures = analyze_container_status_failures(statuses, "web", "Pending", boom)
    assert [f.text for f in failures] == ["pull denied"]


def test_running_unready_with_unhealthy_event():
    statuses = [{"name": "app", "ready": False, "state": {"running": {}}}]
    event = _event(reason="Unhealthy", message="Readiness probe failed")
    failures = analyze_container_status_failures(statuses, "web", "Running", lambda: event)
    assert [f.text for f in failures] == ["Readiness probe failed"]


def test_ready_container_has_no_failures():
    statuses = [{"name": "app", "ready": True, "state": {"running": {}}}]
    event = _event(reason="Unhealthy", message="Readiness probe failed")
    assert analyze_container_status_failures(statuses, "web", "Running", lambda: event) == []


def test_pod_event_warning():
    warning = pod_event_warning("web", _event(reason="BackOff", message="restarting", count=3))
    assert warning.text == "Pod web has Warning event at 2024-01-01T00:00:00Z BackOff(restarting) count 3"
    (unmasked, masked), = warning.sensitive
    assert unmasked == "web"
    assert len(masked) == len("web")


def test_analyze_pending_unschedulable():
    pod = _pod(
        phase="Pending",
        conditions=[{"type": "PodScheduled", "reason": "Unschedulable", "message": "0/3 nodes are available"}],
    )
    result = PodAnalyzer(FakeSource(pod)).analyze("test", "web")
    assert result.kind == "Pod"
    assert result.name == "web"
    assert [f.text for f in result.error] == ["0/3 nodes are available"]


def test_analyze_collects_logs_events_and_parent():
    statuses = [
        {"name": "app", "ready": True, "containerID": "containerd://abc", "state": {"running": {}}},
        {
            "name": "done",
            "ready": False,
            "containerID": "docker://def",
            "state": {"terminated": {"reason": "Completed", "exitCode": 0}},
        },
    ]
    init_statuses = [
        {"name": "init", "containerID": "docker://ghi", "state": {"terminated": {"reason": "Error", "exitCode": 2}}}
    ]
    pod = _pod(
        containers=["app", "done", "missing"],
        statuses=statuses,
        init_containers=["init"],
        init_statuses=init_statuses,
    )
    source = FakeSource(
        pod,
        events=[_event(reason="BackOff", message="restarting")],
        logs={"app": ["line one", "line two"], "init": ["init failed"], "done": ["never"]},
        parent="deploy/web",
    )
    result = PodAnalyzer(source).analyze("test", "web")
    assert [i.text for i in result.info] == [
        "pod web init container init logs: init failed",
        "pod web container app logs: line one\nline two",
    ]
    assert ("done", 60) not in source.log_calls
    assert all(tail == 60 for _, tail in source.log_calls)
    assert len(result.warning) == 1
    assert result.warning[0].text.startswith("Pod web has Warning event")
    assert result.parent_object == "deploy/web"


def test_analyze_tolerates_event_and_log_errors():
    statuses = [{"name": "app", "ready": True, "containerID": "docker://abc", "state": {"running": {}}}]
    pod = _pod(containers=["app"], statuses=statuses)
    source = FakeSource(pod, logs={"app": RuntimeError("stream closed")}, events_error=RuntimeError("no prom"))
    result = PodAnalyzer(source).analyze("test", "web")
    assert result.warning == []
    assert result.info == []
    assert result.parent_object == ""


def test_analyze_missing_pod_raises():
    with pytest.raises(LookupError):
        PodAnalyzer(FakeSource(None)).analyze("test", "web")


def test_prompt_empty_without_findings():
    analyzer = PodAnalyzer(FakeSource(_pod()))
    assert analyzer.prompt(None) == ""
    only_info = AnalysisResult(kind="Pod", name="web", info=[Info(text="log")])
    assert analyzer.prompt(only_info) == ""


def test_prompt_sections():
    result = AnalysisResult(
        kind="Pod",
        name="web",
        error=[Failure(text="crash"), Failure(text="oom")],
        warning=[Warning(text="backoff")],
        info=[Info(text="log line")],
    )
    prompt = PodAnalyzer(FakeSource(_pod())).prompt(result)
    assert prompt == (
        POD_DIAGNOSIS_HEADER
        + FAILURE_SECTION
        + "crash\noom\n"
        + WARNING_SECTION
        + "backoff\n"
        + INFO_SECTION
        + "log line\n"
        + ANSWER_FORMAT
    )
    assert "Healthy:" in prompt and "Solution:" in prompt


def test_prompt_warning_only_omits_other_sections():
    result = AnalysisResult(kind="Pod", name="web", warning=[Warning(text="backoff")])
    prompt = PodAnalyzer(FakeSource(_pod())).prompt(result)
    assert FAILURE_SECTION not in prompt
    assert INFO_SECTION not in prompt
    assert prompt.endswith(ANSWER_FORMAT)