"""Cross-cutting infrastructure: logging, context, middleware, connections."""
