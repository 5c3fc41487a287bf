"""
Mutual exclusion of long-running session operations.
"""

import logging
from enum import Enum
from typing import Optional

from keyword_studio.exceptions import AlreadyCapturing, TrainingInProgress

logger = logging.getLogger(__name__)


class Activity(Enum):
    """Long operations that may not overlap."""
    CAPTURE = "capture"
    TRAINING = "training"


class ActivityGate:
    """
    Admits a single long operation at a time.

    A refused request raises the error describing whichever operation
    currently holds the gate.
    """

    def __init__(self):
        self._holder: Optional[Activity] = None
        self._detail = ""

    @property
    def holder(self) -> Optional[Activity]:
        return self._holder

    @property
    def busy(self) -> bool:
        return self._holder is not None

    def ensure_idle(self) -> None:
        """Raise the holder's error if a long operation is active."""
        if self._holder is Activity.CAPTURE:
            raise AlreadyCapturing(self._detail)
        if self._holder is Activity.TRAINING:
            raise TrainingInProgress()

    def acquire(self, activity: Activity, detail: str = "") -> None:
        self.ensure_idle()
        self._holder = activity
        self._detail = detail
        logger.debug("Gate acquired for %s", activity.value)

    def release(self, activity: Activity) -> None:
        if self._holder is activity:
            self._holder = None
            self._detail = ""
            logger.debug("Gate released by %s", activity.value)
