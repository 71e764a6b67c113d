# aegis

aegis takes alerts from monitoring systems, turns them into one common alert
model, and prepares them for automated operations on a Kubernetes cluster. It
also builds diagnosis prompts for nodes and pods from metrics, events and logs.

## What it covers

- **Alert model** (`aegis.models`): `Alert`, `AlertInvolvedObject` and
  `AlertSourceType`, with `Alert.validate()` enforcing the rules an alert must
  meet: a type, a status of `Firing` or `Resolved`, an involved object with a
  name (and a namespace for pods), and a fingerprint. Failures raise
  `AlertValidationError`.
- **Alertmanager webhooks**: `decode_alertmanager_alerts(stream)` reads an
  Alertmanager payload, and `AlertManagerAlert.to_alert()` converts each entry
  into an `Alert`, working out the involved object from its labels.
- **HTTP intake** (`aegis.handlers`, `aegis.server`): handlers for the
  `/default/alert`, `/alertmanager/alert` and `/ai/alert` routes. Each answers
  with a `CommonResponse` carrying a `ResponseCode` and records parse and
  create outcomes on a `MetricsRecorder`. A `Router` holds the routes;
  `default_router(parser)` returns one with all three registered, and
  `create_server(port, route_prefix, callback, metrics, router)` builds the
  server around it.
- **AI alert parsing** (`aegis.alert_parser`): `DefaultAIAlertParser` asks a
  `CompletionClient` to turn an arbitrary alert document into one or more
  `Alert` objects, fills in a fingerprint with `generate_fingerprint` where
  none was given, and validates the result.
- **Prompts** (`aegis.prompts`): `get_rendered_prompt(kind, data)` renders the
  `default`, `Node`, `Pod` and `AlertParse` templates from a `PromptData`.
  Unknown kinds raise `UnknownPromptError`.
- **Controller logic** (`aegis.controller`, `aegis.alert_resources`,
  `aegis.lifecycle`): `AlertController.create_or_update_alert(alert)` either
  patches a resolved alert's status, bumps the count of an alert that is still
  being handled, or creates a new alert resource with filtered labels and a
  generated name. `Lifecycle` fans alert events out to registered callbacks
  and gathers their failures into a `CallbackAggregateError`.
- **Analyzers** (`aegis.node_analyzer`, `aegis.pod_analyzer`,
  `aegis.analyzers`): `NodeAnalyzer` and `PodAnalyzer` gather failures,
  warnings and log excerpts into an `AnalysisResult` and turn it into a
  diagnosis prompt.

## Examples

Validate an alert received as JSON:

```python
from aegis.models import AlertValidationError, alert_from_dict

alert = alert_from_dict({
    "type": "NodeNotReady",
    "status": "Firing",
    "involvedObject": {"kind": "Node", "name": "node1"},
    "details": {"message": "kubelet stopped posting status"},
    "fingerprint": "node1-notready",
})

try:
    alert.validate()
except AlertValidationError as err:
    print(f"rejected: {err}")
```

Convert an Alertmanager payload:

```python
from aegis.models import decode_alertmanager_alerts

with open("payload.json", "rb") as stream:
    batch = decode_alertmanager_alerts(stream)

for entry in batch.alerts:
    alert = entry.to_alert()
    print(alert.type, alert.status, alert.involved_object.name)
```

Render a diagnosis prompt:

```python
from aegis.prompts import PromptData, get_rendered_prompt

prompt = get_rendered_prompt(
    "Pod",
    PromptData(
        error_info="Pod crashloop due to OOM",
        event_info="BackOff restarting failed container",
        log_info="OOMKilled",
    ),
)
```

Derive the name prefix and labels for an alert resource:

```python
from aegis.alert_resources import filter_labels, generate_name

prefix = generate_name(alert)          # e.g. "default-nodenotready-"
labels = filter_labels(alert.details)  # keeps valid values, drops noisy keys
```

## Requirements

Python 3.10 or later. The package has no runtime dependencies beyond the
standard library; the test suite uses pytest.