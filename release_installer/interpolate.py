"""``${var}`` placeholder expansion for url and subdirectory templates."""

from __future__ import annotations

import re
from typing import Mapping

from .errors import CLIError

_PLACEHOLDER = re.compile(r"\$\{\s*(\w+)\s*\}")


def interpolate(template: str, variables: Mapping[str, str]) -> str:
    """
    Replace ``${key}`` placeholders with values from ``variables``.

    Unknown keys are an error rather than being left in place, since a
    half-expanded URL only fails later with a confusing 404.
    """

    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key not in variables:
            known = ", ".join(sorted(variables))
            raise CLIError(f"unknown template variable '${{{key}}}' in '{template}' (known: {known})")
        return str(variables[key])

    return _PLACEHOLDER.sub(_replace, template)
