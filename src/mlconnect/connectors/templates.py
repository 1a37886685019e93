"""Placeholder substitution for connector templates.

Templates reference values with `${parameters.<name>}` and, in headers,
`${credential.<name>}`. Rendering is pure: the same template and values
always produce the same text, and nothing is mutated.
"""

import re
from collections.abc import Mapping

from mlconnect.core.exceptions import MissingParameterError

PLACEHOLDER_PATTERN = re.compile(r"\$\{(parameters|credential)\.([A-Za-z0-9_.\-]+)\}")


def find_placeholders(template: str) -> list[str]:
    """Return every placeholder in `template` as "<scope>.<name>"."""
    return [f"{scope}.{name}" for scope, name in PLACEHOLDER_PATTERN.findall(template)]


def render(
    template: str,
    parameters: Mapping[str, str] | None = None,
    credential: Mapping[str, str] | None = None,
    *,
    what: str = "template",
) -> str:
    """Substitute placeholders in `template`.

    Args:
        template: Text containing `${parameters.X}` / `${credential.X}`.
        parameters: Values for `${parameters.X}`.
        credential: Values for `${credential.X}`. When None, credential
            placeholders count as unresolved.
        what: Name of the rendered item, used in the error message.

    Returns:
        The rendered text.

    Raises:
        MissingParameterError: If any placeholder has no value.
    """
    scopes: dict[str, Mapping[str, str] | None] = {
        "parameters": parameters or {},
        "credential": credential,
    }
    missing: list[str] = []

    def substitute(match: re.Match[str]) -> str:
        scope, name = match.group(1), match.group(2)
        values = scopes[scope]
        if values is None or name not in values or values[name] is None:
            missing.append(f"{scope}.{name}")
            return match.group(0)
        return str(values[name])

    rendered = PLACEHOLDER_PATTERN.sub(substitute, template)
    if missing:
        msg = f"Some parameter placeholder not filled in {what}: {', '.join(missing)}"
        raise MissingParameterError(msg, placeholders=missing)
    return rendered
