"""Network, losses, metrics and run pipelines."""
