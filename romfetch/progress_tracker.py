"""
Download progress display.

A tqdm byte counter with a small spinner in front of the file name. The
spinner state lives on a Spinner instance, so each FetchProcessor animates
independently.
"""

import time
from typing import Optional
from tqdm import tqdm

SPINNER_FRAMES = ('|', '/', '-', '\\')
SPINNER_RATE = 0.1  # seconds between frames


class Spinner:
    """
    Frame counter for the download spinner.

    Example:
        >>> spinner = Spinner(rate=0)
        >>> spinner.tick(), spinner.tick()
        ('/', '-')
    """

    def __init__(self, frames=SPINNER_FRAMES, rate: float = SPINNER_RATE, clock=time.monotonic):
        self.frames = frames
        self.rate = rate
        self.frame = 0
        self._clock = clock
        self._last = clock()

    @property
    def current(self) -> str:
        return self.frames[self.frame]

    def tick(self) -> Optional[str]:
        """Advance one frame if `rate` seconds have passed; return the new frame or None."""
        now = self._clock()
        if now - self._last < self.rate:
            return None
        self._last = now
        self.frame = (self.frame + 1) % len(self.frames)
        return self.current

    def reset(self) -> None:
        self.frame = 0
        self._last = self._clock()


class DownloadProgress:
    """
    Byte progress for a single download.

    Args:
        name: File name shown next to the spinner
        total: Expected size in bytes, or None if unknown
        spinner: Spinner to animate (a fresh one if omitted)
    """

    def __init__(self, name: str, total: Optional[int] = None, spinner: Optional[Spinner] = None):
        self.name = name
        self.total = total
        self.downloaded = 0
        self.spinner = spinner or Spinner()
        self._bar = tqdm(
            total=total,
            unit='B',
            unit_scale=True,
            unit_divisor=1024,
            desc=self._describe(),
            leave=False
        )

    def _describe(self) -> str:
        return f"{self.spinner.current} Downloading {self.name}"

    @property
    def percentage(self) -> Optional[float]:
        """Percent complete, or None when the total size is unknown."""
        if not self.total:
            return None
        return self.downloaded / self.total * 100

    def update(self, nbytes: int) -> None:
        self.downloaded += nbytes
        self._bar.update(nbytes)
        if self.spinner.tick() is not None:
            self._bar.set_description(self._describe(), refresh=False)

    def close(self) -> None:
        self._bar.close()

    def __enter__(self) -> 'DownloadProgress':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


def format_percentage(percentage: Optional[float]) -> str:
    """` 42.5000%`, or `?%` when indeterminate."""
    if percentage is None:
        return '?%'
    return f"{percentage:>8.4f}%"
