"""Helper utilities for the site backup tool."""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Collection, Iterable, Mapping, Union

PLACEHOLDER = re.compile(r"\{(\w+)\}")


def expand_path(value: Union[str, Path]) -> Path:
    """Expand ``~`` and environment variables in *value* and make it absolute."""

    return Path(os.path.expandvars(os.path.expanduser(str(value)))).resolve()


def fill_placeholders(
    text: str,
    values: Mapping[str, object],
    required: Collection[str] = (),
) -> str:
    """Replace ``{key}`` in *text* with ``values[key]``.

    Braces that do not name a key of *values* are left as they are, unless
    the name is listed in *required*, in which case ``KeyError`` is raised.
    """

    def replace(match: re.Match) -> str:
        key = match.group(1)
        if key in values:
            return str(values[key])
        if key in required:
            raise KeyError(key)
        return match.group(0)

    return PLACEHOLDER.sub(replace, text)


def mask_sensitive(value: str, secrets: Iterable[str]) -> str:
    """Replace occurrences of secret values in *value* with '***'."""

    # Longest first, so a secret containing another one is masked whole.
    secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)
    if not secrets:
        return value
    return re.sub("|".join(map(re.escape, secrets)), "***", value)


__all__ = ["expand_path", "fill_placeholders", "mask_sensitive"]
