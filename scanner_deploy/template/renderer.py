from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Mapping, Set

from scanner_deploy.common.errors import ConfigurationError, TemplateError

_PLACEHOLDER_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def placeholders(template_text: str) -> Set[str]:
    """Return the placeholder names referenced by ``template_text``."""

    return set(_PLACEHOLDER_PATTERN.findall(template_text))


def render(template_text: str, parameters: Mapping[str, str]) -> str:
    """Substitute ``${NAME}`` tokens with values from ``parameters``.

    Substitution is a single pass over the input text, so values that
    themselves look like placeholders are never expanded. Parameters the
    template does not reference are ignored.
    """

    missing = sorted(name for name in placeholders(template_text) if name not in parameters)
    if missing:
        raise TemplateError(
            "template references placeholder(s) without a value: " + ", ".join(missing),
            missing,
        )
    return _PLACEHOLDER_PATTERN.sub(lambda match: str(parameters[match.group(1)]), template_text)


def validate_placeholders(template_text: str, allowed: Iterable[str]) -> None:
    unknown = sorted(placeholders(template_text) - set(allowed))
    if unknown:
        raise TemplateError("template references unknown placeholder(s): " + ", ".join(unknown), unknown)


def load_template(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Job template file not found: {path}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Failed to read job template {path}: {exc}") from exc


def render_file(path: Path, parameters: Mapping[str, str]) -> str:
    return render(load_template(path), parameters)


__all__ = ["load_template", "placeholders", "render", "render_file", "validate_placeholders"]
