"""Remote model connector runtime.

Connectors describe remote model endpoints. Executors sign and send their
requests, the inference service turns predictions into remote calls, and the
artifact helper downloads, verifies and chunks model archives.
"""

__version__ = "0.1.0"
