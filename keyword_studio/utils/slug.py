"""
Slug and name generation for filename-safe identifiers.
"""

import re
import unicodedata
from datetime import datetime
from typing import Optional


def generate_slug(
    text: str,
    max_length: int = 30,
    separator: str = "_"
) -> str:
    """
    Generate a filename-safe slug from a class label.

    Args:
        text: The input text to convert.
        max_length: Maximum length of the resulting slug.
        separator: Character to use between words (default: underscore).

    Returns:
        A clean, filesystem-safe slug.

    Examples:
        >>> generate_slug("Background Noise")
        'background_noise'

        >>> generate_slug("Hey, Computer!")
        'hey_computer'
    """
    if not text:
        return "untitled"

    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = re.sub(r"'", "", text)
    text = re.sub(r"[^a-z0-9]+", separator, text)
    text = text.strip(separator)

    if len(text) > max_length:
        truncated = text[:max_length]
        last_sep = truncated.rfind(separator)
        if last_sep > max_length // 2:
            text = truncated[:last_sep]
        else:
            text = truncated

    text = text.rstrip(separator)
    return text if text else "untitled"


def default_model_name(now: Optional[datetime] = None) -> str:
    """
    Suggested name for a new model.

    Returns:
        Name in format: model-{YYYY-MM-DD}T{HH.MM.SS}
    """
    now = now or datetime.now()
    return f"model-{now.strftime('%Y-%m-%dT%H.%M.%S')}"
