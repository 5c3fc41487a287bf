"""
Example recording for Keyword Studio.

Drives the model's microphone capture one example at a time:
- streams partial spectrogram snippets into a live preview buffer
- records background noise for a fixed duration without snippets
- stores the finished example with the session's duration multiplier
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from keyword_studio.capability import CollectedExample, Spectrogram, TransferModel
from keyword_studio.config import CaptureConfig
from keyword_studio.exceptions import (
    CaptureCancelled,
    CaptureFailed,
    InconsistentDurationMultiplier,
    NotCapturing,
    RegistryNotFinalized,
    UnknownLabel,
)
from keyword_studio.session.examples import Example, ExampleStore
from keyword_studio.session.gate import Activity, ActivityGate
from keyword_studio.session.labels import BACKGROUND_NOISE_TAG, ClassRegistry

logger = logging.getLogger(__name__)

PreviewListener = Callable[[str, Spectrogram], None]


class CaptureState(Enum):
    """Collector state."""
    IDLE = "idle"
    CAPTURING = "capturing"
    FINALIZING = "finalizing"


@dataclass
class _Capture:
    label: str
    duration_multiplier: Optional[int]
    task: Optional[asyncio.Task] = None
    preview_frames: List[np.ndarray] = field(default_factory=list)
    frame_size: int = 0
    stopped: bool = False
    error: Optional[BaseException] = None


class ExampleCollector:
    """
    Records examples through the transfer model.

    Only one capture may be active at a time; the activity gate also keeps
    captures and training runs apart.
    """

    def __init__(
        self,
        registry: ClassRegistry,
        store: ExampleStore,
        model: TransferModel,
        gate: ActivityGate,
        config: Optional[CaptureConfig] = None,
    ):
        self.registry = registry
        self.store = store
        self.model = model
        self.gate = gate
        self.config = config or CaptureConfig()
        self._duration_multiplier = self.config.duration_multiplier
        self._capture: Optional[_Capture] = None
        # Capture that failed with nobody awaiting finalize()
        self._failed: Optional[_Capture] = None
        self._state = CaptureState.IDLE
        self._preview_listeners: List[PreviewListener] = []

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def is_capturing(self) -> bool:
        return self._state is not CaptureState.IDLE

    @property
    def current_label(self) -> Optional[str]:
        return self._capture.label if self._capture else None

    @property
    def duration_multiplier(self) -> int:
        """Multiplier given to newly recorded non-background examples."""
        return self._duration_multiplier

    @duration_multiplier.setter
    def duration_multiplier(self, value: int) -> None:
        if int(value) < 1:
            raise ValueError(f"duration_multiplier must be >= 1, got {value}")
        self._duration_multiplier = int(value)

    @property
    def preview(self) -> Optional[Spectrogram]:
        """Snippets received so far for the active capture."""
        capture = self._capture
        if capture is None or not capture.preview_frames:
            return None
        return Spectrogram(data=np.concatenate(capture.preview_frames), frame_size=capture.frame_size)

    def subscribe_preview(self, listener: PreviewListener) -> Callable[[], None]:
        """Register a preview listener. Returns a callable that unsubscribes it."""
        self._preview_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._preview_listeners:
                self._preview_listeners.remove(listener)

        return unsubscribe

    async def begin_capture(self, label: str, include_raw_audio: Optional[bool] = None) -> None:
        """
        Start recording an example of ``label``.

        Args:
            label: A class of the finalized registry.
            include_raw_audio: Keep the time-domain waveform too
                (defaults to the capture config).
        """
        if not self.registry.is_finalized:
            raise RegistryNotFinalized()
        if label not in self.registry:
            raise UnknownLabel(label)
        if label != BACKGROUND_NOISE_TAG:
            established = self.store.class_multiplier(label)
            if established is not None and established != self._duration_multiplier:
                raise InconsistentDurationMultiplier(label, established, self._duration_multiplier)

        self.gate.acquire(Activity.CAPTURE, label)
        self._failed = None

        if include_raw_audio is None:
            include_raw_audio = self.config.include_raw_audio

        if label == BACKGROUND_NOISE_TAG:
            capture = _Capture(label=label, duration_multiplier=None)
            options = {
                "duration_sec": self.config.background_duration_sec,
                "include_raw_audio": include_raw_audio,
            }
        else:
            capture = _Capture(label=label, duration_multiplier=self._duration_multiplier)
            options = {
                "duration_multiplier": self._duration_multiplier,
                "snippet_duration_sec": self.config.snippet_duration_sec,
                "on_snippet": self._snippet_handler(capture),
                "include_raw_audio": include_raw_audio,
            }

        self._capture = capture
        self._state = CaptureState.CAPTURING
        capture.task = asyncio.ensure_future(self.model.collect_example(label, **options))
        capture.task.add_done_callback(self._done_handler(capture))
        logger.info("Recording example for %r", label)

    def _done_handler(self, capture: _Capture):
        def on_done(task: asyncio.Task) -> None:
            if task.cancelled() or task.exception() is None:
                return
            capture.error = task.exception()
            capture.preview_frames.clear()
            logger.warning("Recording %r failed: %s", capture.label, capture.error)
            if self._capture is capture and not capture.stopped:
                self._failed = capture
            self._reset(capture)

        return on_done

    def _snippet_handler(self, capture: _Capture):
        async def on_snippet(snippet: Spectrogram) -> None:
            if capture is not self._capture or capture.stopped:
                return
            capture.frame_size = snippet.frame_size
            capture.preview_frames.append(np.asarray(snippet.data, dtype=np.float32).reshape(-1))
            preview = self.preview
            for listener in list(self._preview_listeners):
                result = listener(capture.label, preview)
                if inspect.isawaitable(result):
                    await result

        return on_snippet

    async def finalize(self) -> Example:
        """
        Wait for the active capture to finish and store the example.

        Raises:
            NotCapturing: No capture is active.
            CaptureFailed: The model reported an error while recording,
                also when the failure happened before this call.
            CaptureCancelled: ``cancel()`` stopped the capture meanwhile.
        """
        capture = self._capture
        if capture is None:
            failed, self._failed = self._failed, None
            if failed is not None:
                raise CaptureFailed(failed.label, failed.error) from failed.error
            raise NotCapturing()
        if self._state is not CaptureState.CAPTURING:
            raise NotCapturing()

        self._state = CaptureState.FINALIZING
        try:
            await asyncio.wait({capture.task})
        except asyncio.CancelledError:
            capture.task.cancel()
            self._reset(capture)
            raise

        if capture.stopped or capture.task.cancelled():
            self._reset(capture)
            raise CaptureCancelled(capture.label)

        error = capture.task.exception()
        if error is not None:
            self._reset(capture)
            if self._failed is capture:
                self._failed = None
            raise CaptureFailed(capture.label, error) from error

        collected: CollectedExample = capture.task.result()
        try:
            example = self.store.add_example(
                capture.label,
                collected.spectrogram,
                raw_audio=collected.raw_audio,
                duration_multiplier=capture.duration_multiplier,
            )
        finally:
            self._reset(capture)

        logger.info(
            "Stored example %d for %r (%d frames)",
            example.id, example.label, example.spectrogram.num_frames,
        )
        return example

    async def cancel(self) -> bool:
        """
        Stop the active capture without storing anything.

        Returns:
            True if a capture was cancelled.
        """
        capture = self._capture
        if capture is None:
            return False

        capture.stopped = True
        capture.task.cancel()
        await asyncio.wait({capture.task})
        if not capture.task.cancelled() and capture.task.exception() is not None:
            logger.debug("Cancelled capture had failed: %s", capture.task.exception())
        self._reset(capture)
        logger.info("Recording of %r cancelled", capture.label)
        return True

    async def collect(self, label: str, include_raw_audio: Optional[bool] = None) -> Example:
        """Record one example from start to finish."""
        await self.begin_capture(label, include_raw_audio=include_raw_audio)
        return await self.finalize()

    def _reset(self, capture: _Capture) -> None:
        if self._capture is not capture:
            return
        self._capture = None
        self._state = CaptureState.IDLE
        self.gate.release(Activity.CAPTURE)
