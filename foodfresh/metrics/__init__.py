from .core import MetricsRegistry, registry

__all__ = ["MetricsRegistry", "registry"]
