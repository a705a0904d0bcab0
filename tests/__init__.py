"""Test suite for the Parking Spot Allocation Engine"""
