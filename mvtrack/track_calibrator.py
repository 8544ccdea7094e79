"""Converts pixel-space tracks into calibrated, undistorted tracks."""

import numpy as np

import mvtrack.utils.logger as logger_utils
from mvtrack.common.camera import Intrinsics
from mvtrack.common.track import Track, TrackList

logger = logger_utils.get_logger()


class TrackCalibrator:
    """Removes the intrinsics and the lens distortion of the view a track was observed in.

    Points whose calibrated (still distorted) position lies outside the invertible domain of the distortion model are
    dropped; their frames are absent from the result.
    """

    def calibrate_and_undistort(self, track: Track, intrinsics: Intrinsics) -> Track:
        if len(track) == 0:
            return Track()

        frames = track.frames()
        calibrated = intrinsics.calibrate(track.as_array())

        # Filtering must happen before inversion is attempted.
        valid = intrinsics.distortion.is_undistortable(calibrated)
        logger.debug("%d / %d points could be undistorted", int(np.count_nonzero(valid)), len(frames))

        if not np.any(valid):
            return Track()

        undistorted = intrinsics.distortion.undistort(calibrated[valid])
        valid_frames = [frame for frame, is_valid in zip(frames, valid) if is_valid]
        return Track(dict(zip(valid_frames, undistorted)))

    def calibrate_and_undistort_tracks(self, tracks: TrackList, intrinsics: Intrinsics) -> TrackList:
        """Applies `calibrate_and_undistort` to every track, keeping feature ids and order."""
        calibrated = TrackList(
            {feature_id: self.calibrate_and_undistort(track, intrinsics) for feature_id, track in tracks.items()}
        )
        logger.info(
            "Kept %d / %d points of %d tracks after undistortion",
            calibrated.num_points(),
            tracks.num_points(),
            len(tracks),
        )
        return calibrated
