# File: src/parkpool/domain/__init__.py
"""Domain layer: entities, aggregates and allocation/fee strategies"""
