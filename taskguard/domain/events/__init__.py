"""Domain Event definitions.

Progress events are purely observational: they are emitted to an injected
sink and never influence scheduling or retry decisions.
"""
