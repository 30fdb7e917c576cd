"""Question files: markdown body with optional YAML frontmatter."""

from pathlib import Path

import frontmatter

_LIST_KEYS = ("personas",)


def parse_file(file_path: Path) -> tuple[str, dict]:
    """Parse a markdown question file with optional YAML frontmatter.

    Recognized metadata keys: personas (list or comma-separated str),
    discipline (str), rounds (int), timing (str), context (str).

    Returns:
        (question, metadata). ``personas`` is always normalized to a list
        when present. If no frontmatter, metadata is {}.
    """
    post = frontmatter.load(str(file_path))
    question = post.content.strip()
    metadata = dict(post.metadata)
    for key in _LIST_KEYS:
        value = metadata.get(key)
        if isinstance(value, str):
            metadata[key] = [v.strip() for v in value.split(",") if v.strip()]
        elif value is not None:
            metadata[key] = [str(v) for v in value]
    return question, metadata
