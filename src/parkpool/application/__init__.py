# File: src/parkpool/application/__init__.py
"""Application layer: configuration, DTOs and the parking service API"""
