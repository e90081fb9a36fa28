"""Infrastructure Layer Implementations.

Contains the resilience engine (retry, throttle, deadline), monitoring,
configuration, shell-command tasks and the rich console display.
"""
