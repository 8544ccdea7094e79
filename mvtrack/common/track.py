"""Single-view feature tracks.

A track holds the 2d observations of one feature over time in one view, keyed by frame index. A track list holds the
tracks of one view, keyed by a feature id that stays fixed for the lifetime of the track.
"""

from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import numpy as np


class Track:
    """Immutable mapping from frame index to 2d point, iterated in increasing frame order."""

    def __init__(self, points: Optional[Mapping[int, np.ndarray]] = None) -> None:
        points = points or {}
        self._points: Dict[int, np.ndarray] = {}
        for frame in sorted(points):
            uv = np.array(points[frame], dtype=np.float64).reshape(2)
            uv.setflags(write=False)
            self._points[int(frame)] = uv

    @classmethod
    def from_items(cls, items: Iterable[Tuple[int, np.ndarray]]) -> "Track":
        """Builds a track from (frame, point) pairs.

        Raises:
            ValueError: if a frame index appears twice.
        """
        points: Dict[int, np.ndarray] = {}
        for frame, uv in items:
            if frame in points:
                raise ValueError(f"Duplicate observation for frame {frame}")
            points[frame] = uv
        return cls(points)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[int]:
        return iter(self._points)

    def __contains__(self, frame: object) -> bool:
        return frame in self._points

    def __getitem__(self, frame: int) -> np.ndarray:
        return self._points[frame]

    def frames(self) -> List[int]:
        return list(self._points)

    def items(self) -> Iterator[Tuple[int, np.ndarray]]:
        return iter(self._points.items())

    def as_array(self) -> np.ndarray:
        """Returns the points as an (N, 2) array, in frame order."""
        if len(self) == 0:
            return np.zeros((0, 2))
        return np.stack(list(self._points.values()))

    def select_frames(self, frames: Iterable[int]) -> "Track":
        """Generates a new track with only the observations at the given frames.

        Frames without an observation are ignored.
        """
        return Track({frame: self._points[frame] for frame in frames if frame in self._points})

    def __eq__(self, other: object) -> bool:
        """Checks equality with the other object."""
        if not isinstance(other, Track):
            return False

        if self.frames() != other.frames():
            return False

        return all(np.allclose(uv, other[frame]) for frame, uv in self.items())

    def __ne__(self, other: object) -> bool:
        """Checks inequality with the other object."""
        return not self == other

    def __repr__(self) -> str:
        return f"Track(num_points={len(self)}, frames={self.frames()})"


class TrackList:
    """Ordered collection of tracks of one view, keyed by feature id."""

    def __init__(self, tracks: Optional[Mapping[int, Track]] = None) -> None:
        self._tracks: Dict[int, Track] = dict(tracks or {})

    @classmethod
    def from_tracks(cls, tracks: Iterable[Track]) -> "TrackList":
        """Assigns feature ids by position."""
        return cls({feature_id: track for feature_id, track in enumerate(tracks)})

    def __len__(self) -> int:
        return len(self._tracks)

    def __iter__(self) -> Iterator[Track]:
        return iter(self._tracks.values())

    def __getitem__(self, feature_id: int) -> Track:
        return self._tracks[feature_id]

    def __contains__(self, feature_id: object) -> bool:
        return feature_id in self._tracks

    def feature_ids(self) -> List[int]:
        return list(self._tracks)

    def items(self) -> Iterator[Tuple[int, Track]]:
        return iter(self._tracks.items())

    def num_points(self) -> int:
        return sum(len(track) for track in self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TrackList):
            return False
        return self.feature_ids() == other.feature_ids() and all(
            track == other[feature_id] for feature_id, track in self.items()
        )

    def __ne__(self, other: object) -> bool:
        return not self == other

    def __repr__(self) -> str:
        return f"TrackList(num_tracks={len(self)})"
