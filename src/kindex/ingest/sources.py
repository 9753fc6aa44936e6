"""Knowledge source validation and bulk loading from JSON/YAML files.

File format (JSON or YAML)::

    sources:
      - url: https://blog.example.com/posts/monorepo
        title: Moving to a monorepo
        category: blog
      - url: resume://summary
        title: Resume summary
        category: resume
        type: text
        content: "..."
"""

from __future__ import annotations

import json
import urllib.parse
from pathlib import Path
from typing import Any

import yaml

from kindex.db.models import SOURCE_TYPES, KnowledgeSource

_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}


class SourceValidationError(ValueError):
    """Raised when a knowledge source or config file is invalid.

    Attributes:
        problems: Every validation problem found, in field order.
    """

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        self.problems = problems or []
        if self.problems:
            message = f"{message}\n" + "\n".join(f"  - {p}" for p in self.problems)
        super().__init__(message)


def validate_source(raw: Any) -> KnowledgeSource:
    """Validate a raw mapping and return a KnowledgeSource.

    Raises:
        SourceValidationError: Listing every problem found.
    """
    if not isinstance(raw, dict):
        raise SourceValidationError(
            f"A knowledge source must be a mapping, got {type(raw).__name__}."
        )

    problems: list[str] = []
    source_type = raw.get("type") or "url"
    url = raw.get("url")
    title = raw.get("title")
    category = raw.get("category")
    content = raw.get("content")

    if source_type not in SOURCE_TYPES:
        problems.append(f"type: must be one of {', '.join(SOURCE_TYPES)}, got '{source_type}'")

    if not isinstance(url, str) or not url.strip():
        problems.append("url: is required")
    elif source_type == "url" and not _is_http_url(url):
        problems.append(f"url: must be an absolute http(s) URL, got '{url}'")

    if not isinstance(title, str) or not title.strip():
        problems.append("title: must be a non-empty string")
    if not isinstance(category, str) or not category.strip():
        problems.append("category: must be a non-empty string")

    if source_type == "text" and (not isinstance(content, str) or not content.strip()):
        problems.append("content: is required for text sources")
    elif content is not None and not isinstance(content, str):
        problems.append("content: must be a string")

    if problems:
        raise SourceValidationError("Invalid knowledge source.", problems)

    return KnowledgeSource(
        url=url.strip(),
        title=title.strip(),
        category=category.strip(),
        type=source_type,
        content=content,
    )


def parse_config_text(path: Path | str, text: str) -> Any:
    """Parse *text* as JSON or YAML according to the extension of *path*.

    Raises:
        SourceValidationError: On an unsupported extension or a parse error.
    """
    suffix = Path(path).suffix.lower()
    if suffix not in _SUPPORTED_EXTENSIONS:
        raise SourceValidationError(
            f"Unsupported knowledge config extension '{suffix or '(none)'}'. "
            f"Use one of: {', '.join(sorted(_SUPPORTED_EXTENSIONS))}"
        )
    try:
        if suffix == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise SourceValidationError(f"Cannot parse knowledge config '{path}': {exc}") from exc


def load_knowledge_config(path: Path | str) -> list[KnowledgeSource]:
    """Load and validate every source listed in a knowledge config file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        SourceValidationError: If the file is malformed or any source is invalid.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Knowledge config not found: {path}")

    data = parse_config_text(path, path.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or not isinstance(data.get("sources"), list):
        raise SourceValidationError(f"Knowledge config '{path}' must contain a 'sources' list.")
    if not data["sources"]:
        raise SourceValidationError(f"Knowledge config '{path}' has an empty 'sources' list.")

    sources: list[KnowledgeSource] = []
    problems: list[str] = []
    for i, raw in enumerate(data["sources"]):
        try:
            sources.append(validate_source(raw))
        except SourceValidationError as exc:
            problems.extend(f"sources[{i}].{p}" for p in exc.problems or [str(exc)])

    if problems:
        raise SourceValidationError(f"Knowledge config '{path}' is invalid.", problems)
    return sources


def _is_http_url(value: str) -> bool:
    parsed = urllib.parse.urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
