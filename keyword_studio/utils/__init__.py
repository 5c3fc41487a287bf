"""
Utility modules for Keyword Studio.
"""

from keyword_studio.utils.slug import default_model_name, generate_slug
from keyword_studio.utils.audio_utils import (
    calculate_db_level,
    format_duration,
    save_audio,
    save_example_audio,
)

__all__ = [
    "default_model_name",
    "generate_slug",
    "calculate_db_level",
    "format_duration",
    "save_audio",
    "save_example_audio",
]
