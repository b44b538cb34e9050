"""Simulated playback clock for the now-playing item.

No audio is played. The clock only tracks how far into the current track
the room is, so every client can show a progress bar and advance to the next
item when the track runs out.
"""

from collab_client.clock import Clock


class PlaybackClock:
    """Elapsed-time tracker supporting pause, resume and seeking."""

    def __init__(self, clock: Clock):
        self._clock = clock
        self.item_id: str | None = None
        self.duration: float = 0.0
        self._started_at: float = 0.0
        self._paused_at: float | None = None

    def start(self, item_id: str, duration: float) -> None:
        """Begin (or restart) timing ``item_id`` from zero. Pause state is kept."""
        self.item_id = item_id
        self.duration = max(0.0, float(duration))
        self._started_at = self._clock.now()
        if self._paused_at is not None:
            self._paused_at = 0.0

    def stop(self) -> None:
        self.item_id = None
        self.duration = 0.0
        self._paused_at = None

    @property
    def paused(self) -> bool:
        return self._paused_at is not None

    @property
    def elapsed(self) -> float:
        if self.item_id is None:
            return 0.0
        if self._paused_at is not None:
            return self._paused_at
        return min(max(0.0, self._clock.now() - self._started_at), self.duration)

    @property
    def progress(self) -> float:
        """Fraction of the track played, 0..1."""
        if not self.duration:
            return 0.0
        return min(1.0, self.elapsed / self.duration)

    @property
    def finished(self) -> bool:
        return self.item_id is not None and not self.paused and self.elapsed >= self.duration

    def pause(self) -> None:
        if self._paused_at is None:
            self._paused_at = self.elapsed

    def resume(self) -> None:
        if self._paused_at is not None:
            self._started_at = self._clock.now() - self._paused_at
            self._paused_at = None

    def toggle(self) -> bool:
        """Flip pause state. Returns True when now paused."""
        if self.paused:
            self.resume()
        else:
            self.pause()
        return self.paused

    def seek_to(self, seconds: float) -> None:
        """Jump to ``seconds`` into the track, clamped to the track length."""
        if self.item_id is None:
            return
        target = min(max(0.0, seconds), self.duration)
        if self._paused_at is not None:
            self._paused_at = target
        else:
            self._started_at = self._clock.now() - target

    def seek_by(self, delta: float) -> None:
        self.seek_to(self.elapsed + delta)

    def seek_to_fraction(self, fraction: float) -> None:
        self.seek_to(self.duration * min(max(0.0, fraction), 1.0))
