"""Analyzer that gathers a pod's failures, past events and container logs."""

from __future__ import annotations

import logging
import secrets
import string
from typing import Any, Callable, Iterable, Mapping, Protocol

from aegis.analysis import AnalysisResult, Event, Failure, Info, Warning

logger = logging.getLogger(__name__)

POD_KIND = "Pod"
EVENT_RANGE = "7d"
LOG_TAIL_LINES = 60

_MASK_ALPHABET = string.ascii_letters + string.digits

FAILURE_REASONS = frozenset(
    {
        "CrashLoopBackOff",
        "ImagePullBackOff",
        "CreateContainerConfigError",
        "PreCreateHookError",
        "CreateContainerError",
        "PreStartHookError",
        "RunContainerError",
        "ImageInspectError",
        "ErrImagePull",
        "ErrImageNeverPull",
        "InvalidImageName",
    }
)

EVENT_FAILURE_REASONS = frozenset({"FailedCreatePodSandBox", "FailedMount"})

POD_DIAGNOSIS_HEADER = (
    "你是一个很有帮助的 Kubernetes 集群故障诊断专家，接下来你需要根据我给出的现象"
    "（如果没有有效信息，请直接返回正常）帮忙诊断问题，一定需要使用中文来回答."
)
FAILURE_SECTION = "\n异常信息："
WARNING_SECTION = "\n一些 Pod 历史事件（如果认为有帮助，可以使用，或者忽略）："
INFO_SECTION = "\n一些 Pod 日志信息（如果认为有帮助，可以使用，或者忽略）："
ANSWER_FORMAT = """
请按以下格式给出回答，不超过 512 字:
Healthy: {Yes 或者 No，代表是否有异常}
Error: {在这里解释错误}
Solution: {在这里给出分步骤的解决方案}"""


class PodDataSource(Protocol):
    """Where the pod analyzer reads the cluster and metrics data from.

    Pods are mappings in Kubernetes resource form (metadata, spec, status).
    """

    def get_pod(self, namespace: str, name: str) -> Mapping[str, Any]:
        """Return the pod, raising if it does not exist."""

    def get_events(
        self, kind: str, namespace: str, name: str, event_type: str, time_range: str
    ) -> list[Event]:
        """Return the recorded events of an object within the time range."""

    def latest_event(self, namespace: str, name: str) -> Event | None:
        """Return the most recent event of the pod, or None."""

    def get_container_logs(
        self, namespace: str, pod_name: str, container: str, tail_lines: int
    ) -> list[str]:
        """Return the last lines of a container's log."""

    def get_parent(self, pod: Mapping[str, Any]) -> str | None:
        """Return the top-level owner of the pod, or None if it has none."""


def is_error_reason(reason: str) -> bool:
    """Tell whether a container waiting reason denotes a failure."""
    return reason in FAILURE_REASONS


def is_event_error_reason(reason: str) -> bool:
    """Tell whether an event reason denotes a pod creation failure."""
    return reason in EVENT_FAILURE_REASONS


def _mask(value: str) -> str:
    return "".join(secrets.choice(_MASK_ALPHABET) for _ in value)


def pod_event_warning(pod_name: str, event: Event) -> Warning:
    """Describe one recorded event of a pod."""
    return Warning(
        text=(
            f"Pod {pod_name} has {event.type} event at {event.timestamps} "
            f"{event.reason}({event.message}) count {int(event.count)}"
        ),
        sensitive=[(pod_name, _mask(pod_name))],
    )


def _get(mapping: Mapping[str, Any] | None, key: str) -> Any:
    if not mapping:
        return None
    return mapping.get(key)


def _fetch_event(latest_event: Callable[[], Event | None]) -> Event | None:
    try:
        return latest_event()
    except Exception as err:
        logger.debug("cannot fetch latest event: %s", err)
        return None


def analyze_container_status_failures(
    statuses: Iterable[Mapping[str, Any]] | None,
    name: str,
    phase: str,
    latest_event: Callable[[], Event | None],
) -> list[Failure]:
    """Return the failures shown by container statuses of the named pod."""
    failures: list[Failure] = []
    for status in statuses or ():
        state = status.get("state") or {}
        waiting = state.get("waiting")
        terminated = state.get("terminated")
        ready = bool(status.get("ready", False))
        container = status.get("name", "")

        if waiting is not None:
            reason = waiting.get("reason", "")
            message = waiting.get("message", "")
            last_terminated = _get(status.get("lastState"), "terminated")
            if reason == "ContainerCreating" and phase == "Pending":
                event = _fetch_event(latest_event)
                if event is None:
                    continue
                if is_event_error_reason(event.reason) and event.message:
                    failures.append(Failure(text=event.message))
            elif reason == "CrashLoopBackOff" and last_terminated is not None:
                failures.append(
                    Failure(
                        text=(
                            "the last termination reason is "
                            f"{last_terminated.get('reason', '')} "
                            f"container={container} pod={name}"
                        )
                    )
                )
            elif is_error_reason(reason) and message:
                failures.append(Failure(text=message))
        elif terminated is not None and int(terminated.get("exitCode", 0)) != 0:
            if not ready and phase == "Failed":
                failures.append(
                    Failure(
                        text=(
                            f"termination reason is {terminated.get('reason', '')} "
                            f"exitcode={int(terminated.get('exitCode', 0))} "
                            f"container={container} pod={name}"
                        )
                    )
                )
        elif not ready and phase == "Running":
            event = _fetch_event(latest_event)
            if event is None:
                continue
            if event.reason == "Unhealthy" and event.message:
                failures.append(Failure(text=event.message))
    return failures


def _container_id(status: Mapping[str, Any]) -> str:
    return (status.get("containerID") or "").removeprefix("docker://").removeprefix(
        "containerd://"
    )


def _state_reason(status: Mapping[str, Any]) -> str:
    state = status.get("state") or {}
    if state.get("waiting") is not None:
        return state["waiting"].get("reason", "")
    if state.get("terminated") is not None:
        return state["terminated"].get("reason", "")
    return ""


def _section(title: str, texts: list[str]) -> str:
    return title + "".join(text + "\n" for text in texts)


class PodAnalyzer:
    """Collects a pod's failures, recent events and container logs."""

    def __init__(self, source: PodDataSource) -> None:
        self.source = source

    def _logs(self, namespace: str, pod_name: str, container: str, status: Mapping[str, Any]) -> list[str]:
        if _state_reason(status) == "Completed" or not _container_id(status):
            return []
        try:
            return list(
                self.source.get_container_logs(namespace, pod_name, container, LOG_TAIL_LINES)
            )
        except Exception as err:
            logger.error(
                "Error list pod(%s/%s -c %s) log, err: %s, ignore",
                namespace,
                pod_name,
                container,
                err,
            )
            return []

    def _container_infos(
        self,
        pod_name: str,
        namespace: str,
        containers: Iterable[Mapping[str, Any]] | None,
        statuses: Iterable[Mapping[str, Any]] | None,
        label: str,
    ) -> list[Info]:
        by_name = {status.get("name"): status for status in statuses or ()}
        infos: list[Info] = []
        for container in containers or ():
            container_name = container.get("name", "")
            status = by_name.get(container_name)
            if status is None:
                continue
            logs = self._logs(namespace, pod_name, container_name, status)
            if not logs:
                continue
            infos.append(
                Info(text=f"pod {pod_name} {label} {container_name} logs: " + "\n".join(logs))
            )
        return infos

    def analyze(self, namespace: str, name: str) -> AnalysisResult:
        """Analyze the named pod; raises if the pod cannot be read."""
        pod = self.source.get_pod(namespace, name)
        metadata = pod.get("metadata") or {}
        spec = pod.get("spec") or {}
        status = pod.get("status") or {}
        pod_name = metadata.get("name", name)
        pod_namespace = metadata.get("namespace", namespace)
        phase = status.get("phase", "")

        failures: list[Failure] = []
        if phase == "Pending":
            for condition in status.get("conditions") or ():
                if (
                    condition.get("type") == "PodScheduled"
                    and condition.get("reason") == "Unschedulable"
                    and condition.get("message")
                ):
                    failures.append(Failure(text=condition["message"]))

        def latest_event() -> Event | None:
            return self.source.latest_event(pod_namespace, pod_name)

        failures.extend(
            analyze_container_status_failures(
                status.get("initContainerStatuses"), pod_name, phase, latest_event
            )
        )
        failures.extend(
            analyze_container_status_failures(
                status.get("containerStatuses"), pod_name, phase, latest_event
            )
        )

        warnings: list[Warning] = []
        try:
            events = self.source.get_events(POD_KIND, pod_namespace, pod_name, "", EVENT_RANGE)
        except Exception as err:
            logger.warning("error get pod events from prometheus: %s", err)
        else:
            warnings = [pod_event_warning(pod_name, event) for event in events]

        infos = self._container_infos(
            pod_name,
            pod_namespace,
            spec.get("initContainers"),
            status.get("initContainerStatuses"),
            "init container",
        )
        infos.extend(
            self._container_infos(
                pod_name,
                pod_namespace,
                spec.get("containers"),
                status.get("containerStatuses"),
                "container",
            )
        )

        result = AnalysisResult(
            kind=POD_KIND, name=pod_name, error=failures, warning=warnings, info=infos
        )
        parent = self.source.get_parent(pod)
        if parent:
            result.parent_object = parent
        return result

    def prompt(self, result: AnalysisResult | None) -> str:
        """Return a diagnosis prompt for the result, or "" if it found nothing."""
        if result is None or not result.has_findings():
            return ""
        parts = [POD_DIAGNOSIS_HEADER]
        if result.error:
            parts.append(_section(FAILURE_SECTION, [e.text for e in result.error]))
        if result.warning:
            parts.append(_section(WARNING_SECTION, [w.text for w in result.warning]))
        if result.info:
            parts.append(_section(INFO_SECTION, [i.text for i in result.info]))
        parts.append(ANSWER_FORMAT)
        return "".join(parts)