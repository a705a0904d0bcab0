# File: src/parkpool/infrastructure/__init__.py
"""Infrastructure layer: in-memory ticket index and event messaging"""
