"""InfraLayer: declarative infrastructure planning and apply engine."""

__version__ = "0.1.0"
