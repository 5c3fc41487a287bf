"""
Audio utilities for Keyword Studio.

Writing recorded waveforms to WAV files and small formatting helpers.
"""

import numpy as np
from pathlib import Path
from typing import Optional
import soundfile as sf

from keyword_studio.utils.slug import generate_slug


def calculate_db_level(audio_data: np.ndarray) -> float:
    """
    Calculate the dB level of audio data.

    Args:
        audio_data: Audio samples as numpy array.

    Returns:
        RMS level in dB (relative to full scale).
    """
    if len(audio_data) == 0:
        return -np.inf

    rms = np.sqrt(np.mean(audio_data.astype(np.float64) ** 2))
    if rms == 0:
        return -np.inf

    return float(20 * np.log10(rms))


def save_audio(
    file_path: Path,
    audio_data: np.ndarray,
    sample_rate: int = 44100,
    subtype: str = "PCM_16"
) -> Path:
    """
    Save audio data to a file.

    Args:
        file_path: Output file path.
        audio_data: Audio samples as numpy array.
        sample_rate: Sample rate.
        subtype: Audio subtype (PCM_16 for 16-bit WAV).

    Returns:
        The written path.
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Normalize to prevent clipping
    peak = np.max(np.abs(audio_data)) if len(audio_data) else 0.0
    if peak > 1.0:
        audio_data = audio_data / peak * 0.99

    sf.write(str(file_path), audio_data, sample_rate, subtype=subtype)
    return file_path


def example_filename(label: str, example_id: int, extension: str = "wav") -> str:
    """
    Filename for an exported example.

    Examples:
        >>> example_filename("Background Noise", 7)
        'background_noise_0007.wav'
    """
    return f"{generate_slug(label)}_{example_id:04d}.{extension}"


def save_example_audio(example, directory: Path) -> Optional[Path]:
    """
    Write the raw waveform of an example as WAV.

    Returns:
        Path to the file, or None if the example has no raw audio.
    """
    if example.raw_audio is None:
        return None
    path = Path(directory) / example_filename(example.label, example.id)
    return save_audio(path, example.raw_audio.data, example.raw_audio.sample_rate)


def format_duration(seconds: float) -> str:
    """
    Format duration as HH:MM:SS or MM:SS.

    Args:
        seconds: Duration in seconds.

    Returns:
        Formatted string.
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    else:
        return f"{minutes}:{secs:02d}"
