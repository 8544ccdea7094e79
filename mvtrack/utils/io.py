"""Functions to read and write tracks, view lists and multiview tracks."""

import os
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

import numpy as np
import simplejson as json

import mvtrack.utils.logger as logger_utils
from mvtrack.common.multiview_track import CandidateSequence, MultiviewTrack
from mvtrack.common.track import Track, TrackList

logger = logger_utils.get_logger()

PathLike = Union[str, Path]


def save_json_file(json_fpath: PathLike, data: Union[Dict[Any, Any], List[Any]]) -> None:
    """Save a Python dictionary or list to a JSON file.

    Args:
        json_fpath: Path to file to create.
        data: Python dictionary or list to be serialized.
    """
    dirname = os.path.dirname(str(json_fpath))
    if dirname:
        os.makedirs(dirname, exist_ok=True)
    with open(json_fpath, "w") as f:
        json.dump(data, f, indent=4)


def read_json_file(fpath: PathLike) -> Any:
    """Load dictionary from JSON file.

    Args:
        fpath: Path to JSON file.

    Returns:
        Deserialized Python dictionary or list.
    """
    with open(fpath, "r") as f:
        return json.load(f)


def read_lines(fpath: PathLike) -> List[str]:
    """Reads the non-blank lines of a text file, stripped of surrounding whitespace."""
    with open(fpath, "r") as f:
        return [line.strip() for line in f if line.strip()]


def track_to_dict(track: Track) -> List[Dict[str, float]]:
    return [{"frame": frame, "x": float(uv[0]), "y": float(uv[1])} for frame, uv in track.items()]


def track_from_dict(points: Sequence[Dict[str, Any]]) -> Track:
    return Track.from_items((int(p["frame"]), np.array([p["x"], p["y"]], dtype=np.float64)) for p in points)


def save_track_list(fpath: PathLike, tracks: TrackList) -> None:
    """Saves tracks as {"tracks": [{"id": ..., "points": [{"frame": ..., "x": ..., "y": ...}]}]}."""
    data = {
        "tracks": [{"id": feature_id, "points": track_to_dict(track)} for feature_id, track in tracks.items()]
    }
    save_json_file(fpath, data)


def read_track_list(fpath: PathLike) -> TrackList:
    """Reads tracks written by `save_track_list`. Tracks without an "id" get their position in the list."""
    data = read_json_file(fpath)
    tracks = {}
    for position, entry in enumerate(data["tracks"]):
        feature_id = int(entry.get("id", position))
        if feature_id in tracks:
            raise ValueError(f"Duplicate track id {feature_id} in {fpath}")
        tracks[feature_id] = track_from_dict(entry["points"])
    logger.info("Loaded %d single-view tracks from %s", len(tracks), fpath)
    return TrackList(tracks)


def candidate_sequence_to_dict(sequence: CandidateSequence) -> Dict[str, List[Any]]:
    return {"points": sequence.points.tolist(), "lambdas": sequence.lambdas.tolist()}


def candidate_sequence_from_dict(data: Dict[str, List[Any]]) -> CandidateSequence:
    if not data["lambdas"]:
        return CandidateSequence.empty()
    return CandidateSequence(
        np.array(data["points"], dtype=np.float64).reshape(-1, 2), np.array(data["lambdas"], dtype=np.float64)
    )


def save_multiview_tracks(fpath: PathLike, multiview_tracks: Sequence[MultiviewTrack]) -> None:
    """Saves multiview tracks; per track and frame, one candidate sequence per other view."""
    data = {
        "multiview_tracks": [
            {
                "id": mv_track.feature_id,
                "reference_view": mv_track.reference_view,
                "other_views": list(mv_track.other_views),
                "reference_points": track_to_dict(mv_track.reference_track),
                "candidates": [
                    {"frame": frame, "views": [candidate_sequence_to_dict(seq) for seq in sequences]}
                    for frame, sequences in mv_track.candidates.items()
                ],
            }
            for mv_track in multiview_tracks
        ]
    }
    save_json_file(fpath, data)
    logger.info("Saved %d multiview tracks to %s", len(multiview_tracks), fpath)


def read_multiview_tracks(fpath: PathLike) -> List[MultiviewTrack]:
    """Reads multiview tracks written by `save_multiview_tracks`."""
    data = read_json_file(fpath)
    multiview_tracks = []
    for entry in data["multiview_tracks"]:
        candidates = {
            int(c["frame"]): tuple(candidate_sequence_from_dict(seq) for seq in c["views"]) for c in entry["candidates"]
        }
        multiview_tracks.append(
            MultiviewTrack(
                feature_id=int(entry["id"]),
                reference_view=int(entry["reference_view"]),
                reference_track=track_from_dict(entry["reference_points"]),
                other_views=tuple(int(view) for view in entry["other_views"]),
                candidates=candidates,
            )
        )
    return multiview_tracks
