"""Alert intake, normalisation and diagnosis helpers for Kubernetes operations."""

__version__ = "0.1.0"

__all__ = [
    "alert_parser",
    "alert_resources",
    "analysis",
    "analyzers",
    "api_types",
    "controller",
    "handlers",
    "lifecycle",
    "models",
    "node_analyzer",
    "pod_analyzer",
    "prompts",
    "server",
]