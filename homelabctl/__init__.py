"""homelabctl - idempotent bootstrap of a single-node K3s homelab."""

__version__ = "0.1.0"
