"""Persistence collaborator client.

Sub-modules:
- ``client`` — typed wrapper around the store's edge functions
"""
