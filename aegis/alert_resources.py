"""Helpers that shape alert resources: names, labels and patches."""

from __future__ import annotations

import json
import re
from typing import Mapping

from aegis.models import Alert

VALID_LABEL_VALUE_FORMAT = "^[A-Za-z0-9][-A-Za-z0-9_.]*[A-Za-z0-9]$"

FILTER_KEYS = frozenset(
    {
        "alertname",
        "pod",
        "namespace",
        "instance",
        "cluster",
        "description",
        "container",
        "endpoint",
        "env",
        "job",
        "prometheus",
        "service",
    }
)

_VALID_LABEL_VALUE = re.compile(r"[A-Za-z0-9][-A-Za-z0-9_.]*[A-Za-z0-9]")
_NON_WORD = re.compile(r"[\W_]", re.ASCII)
_SELECTOR_VALUE = re.compile(r"(([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9])?")
_MAX_LABEL_VALUE_LENGTH = 63


def generate_name(alert: Alert) -> str:
    """Return the generate-name prefix for an alert resource."""
    name = f"{alert.source_type!s}-{alert.type}-".lower()
    return _NON_WORD.sub("-", name)


def is_valid_label_value(value: str) -> bool:
    """Tell whether a value may be copied into the resource's labels."""
    return _VALID_LABEL_VALUE.fullmatch(value) is not None


def filter_labels(labels: Mapping[str, str]) -> dict[str, str]:
    """Keep the labels whose value is valid and whose key is not filtered out."""
    return {
        key: value
        for key, value in labels.items()
        if key not in FILTER_KEYS and is_valid_label_value(value)
    }


def _json_patch(value: object, path: str) -> bytes:
    patch = [{"op": "replace", "path": path, "value": value}]
    return json.dumps(patch, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def status_patch(status: str) -> bytes:
    """Return a JSON patch that replaces the alert's status."""
    return _json_patch(status, "/status/status")


def count_patch(count: int) -> bytes:
    """Return a JSON patch that replaces the alert's count."""
    return _json_patch(int(count), "/status/count")


def fingerprint_selector(fingerprint: str) -> str:
    """Return a label selector matching alerts with the given fingerprint."""
    if len(fingerprint) > _MAX_LABEL_VALUE_LENGTH or not _SELECTOR_VALUE.fullmatch(fingerprint):
        raise ValueError(f"invalid label value: {fingerprint!r}")
    return f"fingerprint={fingerprint}"