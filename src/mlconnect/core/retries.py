"""Caller-side retry policy for remote invocations.

Executors and the inference service never retry. Callers that want retries
wrap an invocation with `RetryWithBackoff` and this classifier:

```python
from mlconnect.core.retries import InvocationErrorClassifier
from mlconnect.foundation.retry import RetryWithBackoff

retry = RetryWithBackoff(max_attempts=3, classifier=InvocationErrorClassifier())
output = retry.call(service.execute_predict, ml_input)
```
"""

from typing import Any

from mlconnect.core.exceptions import RemoteServiceError, ServiceUnavailableError, TransportError
from mlconnect.foundation.retry import HTTPErrorClassifier


class InvocationErrorClassifier(HTTPErrorClassifier):
    """Classify invocation errors as retriable or not.

    - Transport failures are retriable, except an open circuit breaker
    - Remote 429 and 5xx answers are retriable
    - Everything else (validation, auth, 4xx) fails immediately
    """

    def is_retriable(self, exc: BaseException) -> bool:
        if isinstance(exc, ServiceUnavailableError):
            return False
        if isinstance(exc, TransportError):
            return True
        if isinstance(exc, RemoteServiceError):
            return self.is_retriable_http_status(exc.status_code)
        return False

    def get_error_details(self, exc: BaseException) -> dict[str, Any]:
        if isinstance(exc, TransportError):
            return {"connector": exc.connector, "endpoint": exc.endpoint}
        if isinstance(exc, RemoteServiceError):
            return {"http_status": exc.status_code}
        return {}
