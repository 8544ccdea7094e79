"""Builds multiview tracks from the calibrated tracks of a reference view.

For every point of every track, the viewing ray is searched in every other view. Points are solved independently and
nothing is cached across calls, so the work can be split per track over a Dask cluster.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import dask
from dask.delayed import Delayed

import mvtrack.utils.logger as logger_utils
from mvtrack.common.camera import Camera, CameraPose
from mvtrack.common.multiview_track import MultiviewTrack
from mvtrack.common.track import Track, TrackList
from mvtrack.ray_extent_search import RayExtentSearch

logger = logger_utils.get_logger()


@dataclass(frozen=True)
class MultiviewTrackBuilder:
    """Assembles, per track, the candidate sequences of its points in every other view.

    Args:
        ray_extent_search: quantizes the extent of one viewing ray in one other view.
    """

    ray_extent_search: RayExtentSearch

    def build_track(
        self,
        feature_id: int,
        track: Track,
        reference_pose: CameraPose,
        other_cameras: Sequence[Camera],
        reference_view_index: int,
        other_view_indices: Sequence[int],
    ) -> MultiviewTrack:
        """Searches every point of one calibrated track in every other view."""
        candidates = {
            frame: tuple(
                self.ray_extent_search.find_extent(w, reference_pose, other_camera) for other_camera in other_cameras
            )
            for frame, w in track.items()
        }
        return MultiviewTrack(
            feature_id=feature_id,
            reference_view=reference_view_index,
            reference_track=track,
            other_views=tuple(other_view_indices),
            candidates=candidates,
        )

    def build(
        self,
        tracks: TrackList,
        reference_pose: CameraPose,
        other_cameras: Sequence[Camera],
        reference_view_index: int = 0,
        other_view_indices: Optional[Sequence[int]] = None,
    ) -> List[MultiviewTrack]:
        """Builds one multiview track per input track, in input order.

        Args:
            tracks: calibrated, undistorted tracks of the reference view.
            reference_pose: pose of the reference view.
            other_cameras: cameras of the other views; their order is kept in every multiview track.
            reference_view_index: index of the reference view, recorded in the output.
            other_view_indices: indices of the other views. Defaults to all indices except the reference view's.

        Returns:
            Multiview tracks, one per input track.
        """
        other_view_indices = self._resolve_other_view_indices(
            len(other_cameras), reference_view_index, other_view_indices
        )
        multiview_tracks = [
            self.build_track(
                feature_id, track, reference_pose, other_cameras, reference_view_index, other_view_indices
            )
            for feature_id, track in tracks.items()
        ]
        logger.info(
            "Found extents of %d points of %d tracks in %d other views",
            tracks.num_points(),
            len(tracks),
            len(other_cameras),
        )
        return multiview_tracks

    def create_computation_graph(
        self,
        tracks: TrackList,
        reference_pose: CameraPose,
        other_cameras: Sequence[Camera],
        reference_view_index: int = 0,
        other_view_indices: Optional[Sequence[int]] = None,
    ) -> Delayed:
        """Creates a computation graph with one task per track.

        Args:
            See `build`.

        Returns:
            List of multiview tracks, in input order, wrapped up using dask.delayed.
        """
        other_view_indices = self._resolve_other_view_indices(
            len(other_cameras), reference_view_index, other_view_indices
        )
        multiview_track_graphs = [
            dask.delayed(self.build_track)(
                feature_id, track, reference_pose, other_cameras, reference_view_index, other_view_indices
            )
            for feature_id, track in tracks.items()
        ]
        return dask.delayed(list)(multiview_track_graphs)

    @staticmethod
    def _resolve_other_view_indices(
        num_other_cameras: int, reference_view_index: int, other_view_indices: Optional[Sequence[int]]
    ) -> List[int]:
        if other_view_indices is None:
            num_views = num_other_cameras + 1
            return [view for view in range(num_views) if view != reference_view_index]

        other_view_indices = list(other_view_indices)
        if len(other_view_indices) != num_other_cameras:
            raise ValueError(
                f"Got {len(other_view_indices)} other view indices for {num_other_cameras} other cameras"
            )
        if reference_view_index in other_view_indices:
            raise ValueError(f"Reference view {reference_view_index} cannot also be an other view")
        return other_view_indices
