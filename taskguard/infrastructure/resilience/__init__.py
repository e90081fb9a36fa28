"""Resilience Implementations.

Retry with linear jittered backoff, bounded-concurrency batch execution,
and a deadline guard that races an operation against a timer.
Bounded Context: Task Resilience
"""
