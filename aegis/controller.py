"""Turns incoming alerts into alert resources in the publish namespace."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping, Protocol

from aegis.alert_resources import (
    count_patch,
    filter_labels,
    fingerprint_selector,
    generate_name,
    status_patch,
)
from aegis.models import ALERT_STATUS_RESOLVED, NODE_KIND, POD_KIND, Alert

logger = logging.getLogger(__name__)

OPS_STATUS_SUCCEEDED = "Succeeded"
OPS_STATUS_FAILED = "Failed"


@dataclass
class Configuration:
    """Settings of the controller; defaults match the command-line flags."""

    publish_namespace: str = "default"
    system_paras: dict[str, str] | None = None
    resync_period: timedelta = timedelta(minutes=30)
    sync_workers: int = 2
    enable_leader_election: bool = False
    election_id: str = "aegis-controller"

    enable_alert: bool = True
    default_ttl_after_ops_succeed: int = 2 * 24 * 60 * 60
    default_ttl_after_ops_failed: int = 4 * 24 * 60 * 60
    default_ttl_after_no_ops: int = 1 * 24 * 60 * 60

    enable_diagnosis: bool = True
    diagnosis_language: str = "chinese"
    diagnosis_enable_explain: bool = False
    diagnosis_enable_cache: bool = True

    ai_backend: str = "openai"

    enable_healthcheck: bool = True
    enable_fire_node_event: bool = False
    extra: dict[str, Any] = field(default_factory=dict)


class AlertStore(Protocol):
    """Storage of alert resources, as dictionaries in resource form."""

    def create_alert_with_generate_name(
        self, namespace: str, alert: dict[str, Any], generate_name: str
    ) -> None:
        """Create an alert resource whose name starts with generate_name."""

    def patch_alert_with_label_selector(
        self, namespace: str, selector: str, patch: bytes
    ) -> None:
        """Apply a JSON patch to every alert matching the selector."""

    def list_alerts_with_label_selector(
        self, namespace: str, selector: str
    ) -> list[Mapping[str, Any]]:
        """Return the alert resources matching the selector."""

    def patch_alert(self, namespace: str, name: str, patch: bytes) -> None:
        """Apply a JSON patch to one named alert."""


class PodLocator(Protocol):
    """Finds the node a pod runs on."""

    def node_name(self, namespace: str, name: str) -> str:
        """Return the node name of the pod, raising if it cannot be found."""


def _ops_status(resource: Mapping[str, Any]) -> str:
    status = resource.get("status") or {}
    ops = status.get("opsStatus") or {}
    return ops.get("status", "")


def _count(resource: Mapping[str, Any]) -> int:
    status = resource.get("status") or {}
    return int(status.get("count", 0))


def _name(resource: Mapping[str, Any]) -> str:
    metadata = resource.get("metadata") or {}
    return metadata.get("name", "")


class AlertController:
    """Creates alert resources, or updates the ones an alert already matches."""

    def __init__(
        self,
        config: Configuration,
        store: AlertStore,
        pod_locator: PodLocator | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.pod_locator = pod_locator

    def node_name_for(self, alert: Alert) -> str:
        """Return the node the alert's object lives on, or "" if it has none."""
        obj = alert.involved_object
        if obj.kind == NODE_KIND:
            return obj.name
        if obj.kind == POD_KIND:
            if obj.node:
                return obj.node
            if self.pod_locator is None:
                raise RuntimeError("no pod locator configured to find the pod's node")
            return self.pod_locator.node_name(obj.namespace, obj.name)
        return ""

    def create_or_update_alert(self, alert: Alert | None) -> None:
        """Record an alert: resolve, count a repeat, or create a new resource."""
        if alert is None:
            raise ValueError("empty alert entity")

        if alert.status == ALERT_STATUS_RESOLVED:
            self._patch_alert_status(alert)
            return

        todos = self._incomplete_alerts(alert)
        if todos:
            logger.debug(
                "found %d alert(s) for fingerprint: %s, skipping alert creation",
                len(todos),
                alert.fingerprint,
            )
            self._increment_count(todos[0])
            return

        node = self.node_name_for(alert)

        labels = filter_labels(alert.details)
        labels["alert-source-type"] = str(alert.source_type)
        labels["alert-type"] = alert.type
        labels["alert-status"] = alert.status
        labels["fingerprint"] = alert.fingerprint
        labels["uuid"] = str(uuid.uuid4())
        severity = labels.get("severity", "")

        cfg = self.config
        resource: dict[str, Any] = {
            "metadata": {
                "labels": dict(labels),
                "annotations": dict(cfg.system_paras) if cfg.system_paras is not None else None,
            },
            "spec": {
                "ttlStrategy": {
                    "secondsAfterSuccess": cfg.default_ttl_after_ops_succeed,
                    "secondsAfterFailure": cfg.default_ttl_after_ops_failed,
                    "secondsAfterNoOps": cfg.default_ttl_after_no_ops,
                },
                "selector": {"matchLabels": dict(labels)},
                "source": str(alert.source_type),
                "type": alert.type,
                "status": alert.status,
                "severity": severity,
                "involvedObject": {
                    "kind": alert.involved_object.kind,
                    "name": alert.involved_object.name,
                    "namespace": alert.involved_object.namespace,
                    "node": node,
                },
                "details": dict(alert.details),
            },
            "status": {"status": alert.status, "count": 1},
        }

        try:
            self.store.create_alert_with_generate_name(
                cfg.publish_namespace, resource, generate_name(alert)
            )
        except Exception as err:
            logger.error("fail to create alert %s: %s", alert, err)
            raise

    def _patch_alert_status(self, alert: Alert) -> None:
        if not alert.fingerprint:
            return
        selector = fingerprint_selector(alert.fingerprint)
        try:
            self.store.patch_alert_with_label_selector(
                self.config.publish_namespace, selector, status_patch(alert.status)
            )
        except Exception as err:
            logger.error("fail to patch alert %s: %s", alert, err)
            raise

    def _incomplete_alerts(self, alert: Alert) -> list[Mapping[str, Any]]:
        if not alert.fingerprint:
            return []
        selector = fingerprint_selector(alert.fingerprint)
        try:
            resources = self.store.list_alerts_with_label_selector(
                self.config.publish_namespace, selector
            )
        except Exception as err:
            logger.error("fail to list alert with label selector %s: %s", selector, err)
            raise
        todos = [
            resource
            for resource in resources
            if _ops_status(resource) not in (OPS_STATUS_SUCCEEDED, OPS_STATUS_FAILED)
        ]
        logger.debug("list %d todo alerts for fingerprint %s", len(todos), alert.fingerprint)
        return todos

    def _increment_count(self, todo: Mapping[str, Any]) -> None:
        try:
            self.store.patch_alert(
                self.config.publish_namespace, _name(todo), count_patch(_count(todo) + 1)
            )
        except Exception as err:
            logger.error("fail to patch alert %s: %s", json.dumps(dict(todo), default=str), err)
            raise