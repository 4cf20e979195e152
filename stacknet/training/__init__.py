"""Losses, metrics, cancellation and run pipelines."""
