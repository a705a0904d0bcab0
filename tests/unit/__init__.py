"""Unit tests for the domain, infrastructure and application layers"""
