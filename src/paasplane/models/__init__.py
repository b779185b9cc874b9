"""Pydantic models for all CRDs."""

# Import all models to ensure they're registered
from . import workloads

__all__ = ["workloads"]
