# File: src/parkpool/__init__.py
"""
parkpool - concurrent parking spot allocation engine

Layers:
- domain: spots, floors, lots, tickets, strategies
- infrastructure: active-ticket index, in-process event bus
- application: configuration, DTOs, service API
"""

__version__ = "1.0.0"
