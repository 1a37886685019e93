"""Foundation utilities shared by connectors, executors and clients.

Contains HTTP session management, structured logging, retry helpers and
circuit breakers. Nothing in this package knows about connectors.
"""
