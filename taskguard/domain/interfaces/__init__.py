"""Domain Interfaces (Ports).

Contracts for the collaborators the engine and the CLI depend on.
"""
