"""Web control plane for a Kubernetes cluster: a master API server, a node-reporting worker, and their models."""

__version__ = "0.0.0"