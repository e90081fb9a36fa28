"""Domain layer: policies, outcomes, progress events and error types."""
