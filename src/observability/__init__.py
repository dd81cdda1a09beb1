"""
Observability module for reading-quest.

This module provides:
- Metrics collection with Prometheus (exposed on /metrics)
"""

__all__ = ["metrics"]
