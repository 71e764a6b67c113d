"""Fan-out of alert lifecycle events to registered callbacks."""

from __future__ import annotations

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class _Callback(Protocol):
    def on_create(self, alert: Any) -> None: ...

    def on_update(self, alert: Any) -> None: ...

    def on_delete(self, alert: Any) -> None: ...

    def on_no_ops_rule(self, alert: Any) -> None: ...

    def on_no_ops_template(self, alert: Any) -> None: ...

    def on_failed_create_ops_workflow(self, alert: Any) -> None: ...

    def on_succeed_create_ops_workflow(self, alert: Any) -> None: ...

    def on_ops_workflow_succeed(self, alert: Any) -> None: ...

    def on_ops_workflow_failed(self, alert: Any) -> None: ...

    def on_node_check_update(self, nodecheck: Any) -> None: ...


class CallbackAggregateError(Exception):
    """One or more callbacks failed while handling an event."""

    def __init__(self, errors: list[BaseException]) -> None:
        self.errors = list(errors)
        super().__init__(str(self))

    def __str__(self) -> str:
        if len(self.errors) == 1:
            return str(self.errors[0])
        return "[" + ", ".join(str(err) for err in self.errors) + "]"


class Lifecycle:
    """Calls every registered callback for each event, collecting failures."""

    def __init__(self) -> None:
        self._callbacks: dict[str, _Callback] = {}

    def register(self, name: str, callback: _Callback) -> None:
        """Register a callback under a name that is not yet taken."""
        if name in self._callbacks:
            logger.error("Failed to register existed callback %s", name)
            raise ValueError(f"callback {name} already registered")
        self._callbacks[name] = callback
        logger.info("Succeeded register callback %s", name)

    def _dispatch(self, hook: str, subject: Any) -> None:
        errors: list[BaseException] = []
        for callback in self._callbacks.values():
            try:
                getattr(callback, hook)(subject)
            except Exception as err:
                errors.append(err)
        if errors:
            raise CallbackAggregateError(errors)

    def on_create(self, alert: Any) -> None:
        self._dispatch("on_create", alert)

    def on_update(self, alert: Any) -> None:
        self._dispatch("on_update", alert)

    def on_delete(self, alert: Any) -> None:
        self._dispatch("on_delete", alert)

    def on_no_ops_rule(self, alert: Any) -> None:
        self._dispatch("on_no_ops_rule", alert)

    def on_no_ops_template(self, alert: Any) -> None:
        self._dispatch("on_no_ops_template", alert)

    def on_failed_create_ops_workflow(self, alert: Any) -> None:
        self._dispatch("on_failed_create_ops_workflow", alert)

    def on_succeed_create_ops_workflow(self, alert: Any) -> None:
        self._dispatch("on_succeed_create_ops_workflow", alert)

    def on_ops_workflow_succeed(self, alert: Any) -> None:
        self._dispatch("on_ops_workflow_succeed", alert)

    def on_ops_workflow_failed(self, alert: Any) -> None:
        self._dispatch("on_ops_workflow_failed", alert)

    def on_node_check_update(self, nodecheck: Any) -> None:
        self._dispatch("on_node_check_update", nodecheck)