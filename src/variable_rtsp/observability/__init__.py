"""
Observability Module
====================

Optional HTTP surface for the RTSP control plane.

DESIGN RULES:
    - Read-only view of the ServerContext
    - Does NOT influence rate decisions
"""

from variable_rtsp.observability.api import create_app


__all__ = [
    "create_app",
]
