"""Multiview tracks: a reference-view track with, per frame and per other view, the quantized extent of its viewing
ray in that view.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, NamedTuple, Tuple

import numpy as np

from mvtrack.common.track import Track


class CandidateSequence(NamedTuple):
    """Candidate image positions along the projection of a viewing ray into another view.

    Ordered from the far end of the ray (large lambda) towards its near end. No candidates means the ray is not
    visible in the view.

    Args:
        points: (N, 2) distorted pixel coordinates in the other view.
        lambdas: (N,) ray parameters of the points.
    """

    points: np.ndarray
    lambdas: np.ndarray

    @classmethod
    def empty(cls) -> "CandidateSequence":
        return cls(np.zeros((0, 2)), np.zeros((0,)))

    def num_candidates(self) -> int:
        return int(self.lambdas.shape[0])

    def is_empty(self) -> bool:
        return self.num_candidates() == 0

    def spacings(self) -> np.ndarray:
        """Pixel distance between consecutive candidates, of shape (N-1,)."""
        if self.num_candidates() < 2:
            return np.zeros((0,))
        return np.linalg.norm(np.diff(self.points, axis=0), axis=1)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CandidateSequence):
            return False
        if self.num_candidates() != other.num_candidates():
            return False
        return np.allclose(self.points, other.points) and np.allclose(self.lambdas, other.lambdas)

    def __ne__(self, other: object) -> bool:
        return not self == other


@dataclass(frozen=True)
class MultiviewTrack:
    """A reference-view track together with its candidate sequences in every other view.

    Args:
        feature_id: id of the track in the reference view's track list.
        reference_view: index of the view the track was observed in.
        reference_track: calibrated, undistorted track in the reference view.
        other_views: indices of the other views, in the order their candidate sequences are stored.
        candidates: per frame of the reference track, one candidate sequence per other view.
    """

    feature_id: int
    reference_view: int
    reference_track: Track
    other_views: Tuple[int, ...]
    candidates: Mapping[int, Tuple[CandidateSequence, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if set(self.candidates) != set(self.reference_track.frames()):
            raise ValueError("Candidates must be given for exactly the frames of the reference track")
        for frame, sequences in self.candidates.items():
            if len(sequences) != len(self.other_views):
                raise ValueError(
                    f"Frame {frame} has {len(sequences)} candidate sequences for {len(self.other_views)} other views"
                )

        candidates = {frame: tuple(sequences) for frame, sequences in self.candidates.items()}
        object.__setattr__(self, "candidates", MappingProxyType(candidates))

    def __reduce__(self) -> Tuple[Any, ...]:
        # Read-only mapping proxies cannot be pickled, so Dask workers ship a plain copy.
        return (
            MultiviewTrack,
            (self.feature_id, self.reference_view, self.reference_track, self.other_views, dict(self.candidates)),
        )

    def num_frames(self) -> int:
        return len(self.reference_track)

    def candidates_in_view(self, view: int) -> Dict[int, CandidateSequence]:
        """Candidate sequences in one other view, keyed by frame.

        Raises:
            KeyError: if `view` is not one of the other views.
        """
        if view not in self.other_views:
            raise KeyError(f"View {view} is not one of the other views {self.other_views}")
        slot = self.other_views.index(view)
        return {frame: sequences[slot] for frame, sequences in self.candidates.items()}

    def is_visible_in(self, view: int) -> bool:
        """Whether the ray of at least one frame is visible in the given view."""
        return any(not sequence.is_empty() for sequence in self.candidates_in_view(view).values())

    def num_candidates(self) -> int:
        return sum(sequence.num_candidates() for sequences in self.candidates.values() for sequence in sequences)
