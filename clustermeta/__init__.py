"""NAT translation tracking and Kubernetes metadata caching for network observability."""

__version__ = "0.1.0"