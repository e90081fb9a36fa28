"""Core Application Layer.

Coordinates CLI commands with the resilience engine and the user interface.
"""
