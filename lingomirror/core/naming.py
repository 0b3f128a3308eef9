#!/usr/bin/env python3
"""Library name and target path templates using Jinja2.

Mirror libraries get a default name and directory derived from the source
library and the alternative. Both are Jinja2 templates so operators can
change the convention without code changes:
- ``source``: source library name
- ``alternative``: alternative name
- ``language``: alternative language code
- ``base``: alternative destination base path (paths only)
- ``slug`` filter: filesystem-friendly form of a name

Example:
    >>> renderer = NameRenderer()
    >>> renderer.library_name("Movies", "Portuguese", "pt-BR")
    'Movies (Portuguese)'
    >>> renderer.target_path("/media/pt", "Movies", "Portuguese", "pt-BR")
    '/media/pt/movies'
"""

import os
import re
from typing import Any, Dict, Optional

import jinja2

from lingomirror.core.constants import DEFAULT_LIBRARY_NAME_TEMPLATE, DEFAULT_TARGET_PATH_TEMPLATE
from lingomirror.core.validators import ValidationError, validate_absolute_path, validate_library_name

_SLUG_STRIP_RE = re.compile(r"[^\w\s.-]", re.UNICODE)
_SLUG_SPACE_RE = re.compile(r"[\s_]+")


def slugify(value: str) -> str:
    """Lowercase, drop punctuation and turn whitespace into single hyphens."""
    value = _SLUG_STRIP_RE.sub("", str(value)).strip().lower()
    value = _SLUG_SPACE_RE.sub("-", value)
    return value.strip(".-") or "library"


class NameRenderer:
    """Renders mirror library names and target paths from Jinja2 templates."""

    def __init__(
        self,
        library_name_template: Optional[str] = None,
        target_path_template: Optional[str] = None,
    ):
        """Initialize renderer.

        Args:
            library_name_template: Template for target library names
            target_path_template: Template for target directories
        """
        self.library_name_template = library_name_template or DEFAULT_LIBRARY_NAME_TEMPLATE
        self.target_path_template = target_path_template or DEFAULT_TARGET_PATH_TEMPLATE
        self._env: Optional[jinja2.Environment] = None

    def _get_environment(self) -> jinja2.Environment:
        """Get or create the Jinja2 environment."""
        if self._env is None:
            self._env = jinja2.Environment(
                autoescape=False,
                undefined=jinja2.StrictUndefined,
                keep_trailing_newline=False,
            )
            self._env.filters["slug"] = slugify
        return self._env

    def _render(self, template: str, context: Dict[str, Any]) -> str:
        try:
            return self._get_environment().from_string(template).render(**context).strip()
        except jinja2.TemplateError as e:
            raise ValidationError(f"Template error in '{template}': {e}")

    def library_name(self, source: str, alternative: str, language: str = "") -> str:
        """Render the default target library name.

        Raises:
            ValidationError: If the template fails or renders an invalid name
        """
        name = self._render(
            self.library_name_template,
            {"source": source, "alternative": alternative, "language": language},
        )
        validate_library_name(name)
        return name

    def target_path(self, base: str, source: str, alternative: str, language: str = "") -> str:
        """Render the default target directory for a mirror.

        Raises:
            ValidationError: If the template fails or renders an unsafe path
        """
        path = self._render(
            self.target_path_template,
            {
                "base": base.rstrip("/\\") or "/",
                "source": source,
                "alternative": alternative,
                "language": language,
            },
        )
        validate_absolute_path(path)
        return os.path.normpath(path)
