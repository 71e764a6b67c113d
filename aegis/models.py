"""Alert models shared by the HTTP API and the controller."""

from __future__ import annotations

import enum
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import IO, Any, Mapping

logger = logging.getLogger(__name__)


class AlertSourceType(str, enum.Enum):
    """Where an alert came from."""

    DEFAULT = "Default"
    ALERTMANAGER = "Alertmanager"
    AI = "AI"

    def __str__(self) -> str:
        return self.value


ALERT_STATUS_FIRING = "Firing"
ALERT_STATUS_RESOLVED = "Resolved"

NODE_KIND = "Node"
POD_KIND = "Pod"
APISERVER_KIND = "Apiserver"
ETCD_KIND = "Etcd"
INGRESS_KIND = "Ingress"
WORKFLOW_KIND = "Workflow"
KUBELET_KIND = "Kubelet"
PROMETHEUS_KIND = "Prometheus"


class AlertValidationError(ValueError):
    """An alert is missing a required field or holds an invalid value."""


def validate_kind(kind: str) -> None:
    """Check an involved object kind; every kind is currently accepted."""
    return None


@dataclass
class AlertInvolvedObject:
    """The Kubernetes object an alert is about."""

    kind: str = ""
    name: str = ""
    namespace: str = ""
    node: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind,
            "name": self.name,
            "namespace": self.namespace,
            "node": self.node,
        }


@dataclass
class Alert:
    """An alert in the common format every source is converted to."""

    type: str = ""
    status: str = ""
    involved_object: AlertInvolvedObject = field(default_factory=AlertInvolvedObject)
    details: dict[str, str] = field(default_factory=dict)
    fingerprint: str = ""
    source_type: str = ""

    def validate(self) -> None:
        """Raise AlertValidationError if the alert is not usable."""
        if not self.type:
            raise AlertValidationError("empty type")
        if self.status not in (ALERT_STATUS_FIRING, ALERT_STATUS_RESOLVED):
            raise AlertValidationError(f"invalid alert status: {self.status}")
        obj = self.involved_object
        try:
            validate_kind(obj.kind)
        except AlertValidationError as err:
            raise AlertValidationError(
                f"invalid alert involved object kind: {obj.kind}"
            ) from err
        if not obj.name:
            raise AlertValidationError("empty alert involved object name")
        if obj.kind == POD_KIND and not obj.namespace:
            raise AlertValidationError("empty alert involved object namespace")
        if not self.fingerprint:
            raise AlertValidationError("empty fingerprint")

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the alert."""
        return {
            "AlertSourceType": str(self.source_type),
            "type": self.type,
            "status": self.status,
            "involvedObject": self.involved_object.to_dict(),
            "details": dict(self.details),
            "fingerprint": self.fingerprint,
        }


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {type(value).__name__}")
    return value


def _optional_string(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {type(value).__name__}")
    return value


def _string_map(data: Mapping[str, Any], key: str) -> dict[str, str]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"field {key!r} must be an object")
    result: dict[str, str] = {}
    for name, item in value.items():
        if item is None:
            item = ""
        if not isinstance(item, str):
            raise ValueError(f"field {key!r}.{name!r} must be a string")
        result[name] = item
    return result


def _object(data: Any, what: str) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"cannot decode {what} from JSON {type(data).__name__}")
    return data


def _source_type(value: str) -> str:
    try:
        return AlertSourceType(value)
    except ValueError:
        return value


def alert_from_dict(data: Any) -> Alert:
    """Build an Alert from its decoded JSON form."""
    data = _object(data, "alert")
    obj = _object(data.get("involvedObject"), "involved object")
    return Alert(
        type=_string(data, "type"),
        status=_string(data, "status"),
        involved_object=AlertInvolvedObject(
            kind=_string(obj, "kind"),
            name=_string(obj, "name"),
            namespace=_string(obj, "namespace"),
            node=_string(obj, "node"),
        ),
        details=_string_map(data, "details"),
        fingerprint=_string(data, "fingerprint"),
        source_type=_source_type(_string(data, "AlertSourceType")),
    )


def _read_text(stream: IO[Any]) -> str:
    raw = stream.read()
    if isinstance(raw, bytes):
        return raw.decode("utf-8")
    return raw


def decode_alert(stream: IO[Any]) -> Alert:
    """Decode the first JSON value of a stream into a default-source Alert."""
    text = _read_text(stream).lstrip()
    data, _ = json.JSONDecoder().raw_decode(text)
    alert = alert_from_dict(data)
    alert.source_type = AlertSourceType.DEFAULT
    return alert


@dataclass
class AlertManagerAlert:
    """A single alert as sent by an Alertmanager webhook."""

    status: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    fingerprint: str = ""
    starts_at: str | None = None
    ends_at: str | None = None
    updated_at: str | None = None

    def to_alert(self) -> Alert:
        """Convert to the common Alert format, raising AlertValidationError."""
        details = dict(self.labels)
        if "description" in self.annotations:
            details["description"] = self.annotations["description"]

        fingerprint = self.fingerprint
        if not fingerprint:
            fingerprint = str(uuid.uuid4())
            logger.warning("fingerprint not found, random generate an uuid: %s", fingerprint)

        status = self.status.lower()
        if status == ALERT_STATUS_FIRING.lower():
            status = ALERT_STATUS_FIRING
        elif status == ALERT_STATUS_RESOLVED.lower():
            status = ALERT_STATUS_RESOLVED
        else:
            raise AlertValidationError(f"invalid status: {self.status}")

        labels = self.labels
        if "alertname" not in labels:
            raise AlertValidationError("empty alert type")
        kind = labels.get("kind")
        if kind is None:
            raise AlertValidationError("label kind requried")
        validate_kind(kind)

        namespace = labels.get("namespace", "")
        if "involved_object_name" in labels:
            involved = AlertInvolvedObject(
                kind=kind, name=labels["involved_object_name"], namespace=namespace
            )
        else:
            node = labels.get("node")
            instance = labels.get("instance")
            if instance is not None and node is None:
                node = instance
            if kind == POD_KIND:
                involved = AlertInvolvedObject(
                    kind=POD_KIND, name=labels.get("pod", ""), namespace=namespace
                )
            elif kind == NODE_KIND:
                involved = AlertInvolvedObject(kind=NODE_KIND, name=node or "")
            else:
                name = instance if instance is not None else labels.get("job", "")
                involved = AlertInvolvedObject(kind=kind, name=name)

        return Alert(
            type=labels["alertname"],
            status=status,
            involved_object=involved,
            details=details,
            fingerprint=fingerprint,
            source_type=AlertSourceType.ALERTMANAGER,
        )


@dataclass
class AlertManagerAlerts:
    """The body of an Alertmanager webhook notification."""

    status: str = ""
    alerts: list[AlertManagerAlert] = field(default_factory=list)
    common_annotations: dict[str, str] = field(default_factory=dict)


def alertmanager_alert_from_dict(data: Any) -> AlertManagerAlert:
    """Build an AlertManagerAlert from its decoded JSON form."""
    data = _object(data, "alertmanager alert")
    return AlertManagerAlert(
        status=_string(data, "status"),
        labels=_string_map(data, "labels"),
        annotations=_string_map(data, "annotations"),
        fingerprint=_string(data, "fingerprint"),
        starts_at=_optional_string(data, "startsAt"),
        ends_at=_optional_string(data, "endsAt"),
        updated_at=_optional_string(data, "updatedAt"),
    )


def decode_alertmanager_alerts(stream: IO[Any]) -> AlertManagerAlerts:
    """Decode a whole Alertmanager webhook body."""
    data = _object(json.loads(_read_text(stream)), "alertmanager alerts")
    raw_alerts = data.get("alerts")
    if raw_alerts is None:
        raw_alerts = []
    if not isinstance(raw_alerts, list):
        raise ValueError("field 'alerts' must be an array")
    return AlertManagerAlerts(
        status=_string(data, "status"),
        alerts=[alertmanager_alert_from_dict(item) for item in raw_alerts],
        common_annotations=_string_map(data, "commonAnnotations"),
    )