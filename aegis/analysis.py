"""Result types produced by the Kubernetes object analyzers."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Failure:
    """A problem found on an object; sensitive holds (unmasked, masked) pairs."""

    text: str
    kubernetes_doc: str = ""
    sensitive: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class Warning:
    """A warning-level finding, such as a past warning event."""

    text: str
    kubernetes_doc: str = ""
    sensitive: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class Info:
    """Supporting information, such as container logs."""

    text: str
    kubernetes_doc: str = ""
    sensitive: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class AnalysisResult:
    """Everything an analyzer found about one object."""

    kind: str
    name: str
    error: list[Failure] = field(default_factory=list)
    warning: list[Warning] = field(default_factory=list)
    info: list[Info] = field(default_factory=list)
    details: str = ""
    parent_object: str = ""

    def has_findings(self) -> bool:
        """Tell whether there are failures or warnings worth a prompt."""
        return bool(self.error or self.warning)


@dataclass
class NodeStatus:
    """One abnormal node condition reported by the metrics system."""

    condition: str
    type: str
    id: str
    value: int


@dataclass
class Event:
    """A Kubernetes event as recorded by the metrics system."""

    type: str
    timestamps: str
    reason: str
    message: str
    count: int