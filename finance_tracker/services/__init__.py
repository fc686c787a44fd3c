"""External services: record storage and outbound messaging."""
