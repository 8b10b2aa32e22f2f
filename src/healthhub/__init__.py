"""healthhub: a minimal service health-monitoring hub."""

__version__ = "0.1.0"
