"""Core connector runtime: models, errors, invocation and artifacts."""
