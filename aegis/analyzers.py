"""The table of analyzers keyed by the object kind they handle."""

from __future__ import annotations

from typing import Any, Protocol

from aegis.analysis import AnalysisResult


class Analyzer(Protocol):
    """Analyzes one kind of object and writes a prompt from the result."""

    def analyze(self, *args: Any) -> AnalysisResult:
        """Return what was found about the object."""

    def prompt(self, result: AnalysisResult | None) -> str:
        """Return a diagnosis prompt for the result, or "" if there is none."""


def build_analyzer_map(pod_analyzer: Analyzer, node_analyzer: Analyzer) -> dict[str, Analyzer]:
    """Return a fresh map of the Pod and Node analyzers."""
    return {"Pod": pod_analyzer, "Node": node_analyzer}