"""Open Access Explorer: federated search over open-access paper repositories."""

__version__ = "0.1.0"
