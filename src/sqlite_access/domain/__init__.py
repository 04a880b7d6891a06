"""Domain layer: value objects, entities and services with no I/O."""
