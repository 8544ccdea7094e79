"""Finds multiview tracks given the tracks of one view and the calibration of every view.

Example:
    python -m mvtrack.runner.run_multiview_track_finder --view_index 0 --tracks_path tracks.json \
        --views_path views.txt --intrinsics_format intrinsics/%s.json --extrinsics_format extrinsics/%s.json \
        --output_path multiview_tracks.json
"""

import argparse
import logging
import time
from typing import List, Optional, Sequence

import dask
import hydra
from dask.distributed import Client, LocalCluster
from hydra.utils import instantiate
from omegaconf import OmegaConf

import mvtrack.utils.io as io_utils
import mvtrack.utils.logger as logger_utils
from mvtrack.common.multiview_track import MultiviewTrack
from mvtrack.common.track import TrackList
from mvtrack.loader.view_loader import ViewLoader
from mvtrack.multiview_track_builder import MultiviewTrackBuilder
from mvtrack.track_calibrator import TrackCalibrator

logger = logger_utils.get_logger()


def select_frames_in_range(tracks: TrackList, num_frames: int) -> TrackList:
    """Drops observations whose frame index lies outside [0, num_frames)."""
    return TrackList(
        {feature_id: track.select_frames(range(num_frames)) for feature_id, track in tracks.items()}
    )


class MultiviewTrackFinderRunner:
    tag = "Finds multiview tracks given tracks in one view"

    def __init__(self, override_args: Optional[Sequence[str]] = None) -> None:
        argparser: argparse.ArgumentParser = self.construct_argparser()
        self.parsed_args: argparse.Namespace = argparser.parse_args(args=override_args)

        # Configure the logging system
        log_level = getattr(logging, self.parsed_args.log.upper(), None)
        if log_level is not None:
            logger.setLevel(log_level)

        self.loader = ViewLoader(
            self.parsed_args.views_path, self.parsed_args.intrinsics_format, self.parsed_args.extrinsics_format
        )
        self.multiview_track_builder: MultiviewTrackBuilder = self.construct_multiview_track_builder()

    def construct_argparser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(description=self.tag)

        parser.add_argument(
            "--view_index",
            type=int,
            required=True,
            help="Zero-based index of the view to which the input tracks belong.",
        )
        parser.add_argument("--tracks_path", type=str, required=True, help="JSON file with the input tracks.")
        parser.add_argument(
            "--views_path", type=str, required=True, help="Text file whose lines are the view names."
        )
        parser.add_argument(
            "--intrinsics_format", type=str, required=True, help="Intrinsics file per view, e.g. intrinsics/%%s.json"
        )
        parser.add_argument(
            "--extrinsics_format", type=str, required=True, help="Extrinsics file per view, e.g. extrinsics/%%s.json"
        )
        parser.add_argument(
            "--output_path", type=str, required=True, help="JSON file to write the multiview tracks to."
        )
        parser.add_argument(
            "--config_name",
            type=str,
            default="default.yaml",
            help="Config file in mvtrack/configs. Options include `default.yaml` and `coarse.yaml`.",
        )
        parser.add_argument(
            "--quantization_step",
            type=float,
            default=None,
            help="Override for the pixel spacing between consecutive candidates.",
        )
        parser.add_argument(
            "--num_frames",
            type=int,
            default=None,
            help="Number of frames in the sequence; observations outside [0, num_frames) are ignored.",
        )
        parser.add_argument(
            "--num_workers",
            type=int,
            default=1,
            help="Number of Dask workers. With a single worker, tracks are processed in the main process.",
        )
        parser.add_argument(
            "--threads_per_worker",
            type=int,
            default=1,
            help="Number of threads per each worker.",
        )
        parser.add_argument(
            "-l",
            "--log",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            default="INFO",
            help="Set the logging level",
        )
        return parser

    def construct_multiview_track_builder(self) -> MultiviewTrackBuilder:
        """Construct the builder from a config in mvtrack/configs."""
        with hydra.initialize_config_module(config_module="mvtrack.configs", version_base=None):
            overrides = []
            if self.parsed_args.quantization_step is not None:
                overrides.append(
                    f"MultiviewTrackBuilder.ray_extent_search.quantization_step={self.parsed_args.quantization_step}"
                )
            main_cfg = hydra.compose(config_name=self.parsed_args.config_name, overrides=overrides)
            logger.info("\n\nMultiviewTrackBuilder config: " + OmegaConf.to_yaml(main_cfg))
            multiview_track_builder: MultiviewTrackBuilder = instantiate(main_cfg.MultiviewTrackBuilder)

        return multiview_track_builder

    def run(self) -> List[MultiviewTrack]:
        """Loads the inputs, finds the multiview tracks and saves them."""
        start_time = time.time()
        view_index = self.parsed_args.view_index

        reference_camera, other_view_indices, other_cameras = self.loader.get_reference_and_other_cameras(view_index)

        tracks = io_utils.read_track_list(self.parsed_args.tracks_path)
        if self.parsed_args.num_frames is not None:
            tracks = select_frames_in_range(tracks, self.parsed_args.num_frames)

        undistorted_tracks = TrackCalibrator().calibrate_and_undistort_tracks(tracks, reference_camera.intrinsics)

        if self.parsed_args.num_workers > 1:
            with LocalCluster(
                n_workers=self.parsed_args.num_workers, threads_per_worker=self.parsed_args.threads_per_worker
            ) as cluster, Client(cluster):
                multiview_tracks_graph = self.multiview_track_builder.create_computation_graph(
                    undistorted_tracks,
                    reference_camera.pose,
                    other_cameras,
                    reference_view_index=view_index,
                    other_view_indices=other_view_indices,
                )
                (multiview_tracks,) = dask.compute(multiview_tracks_graph)
        else:
            multiview_tracks = self.multiview_track_builder.build(
                undistorted_tracks,
                reference_camera.pose,
                other_cameras,
                reference_view_index=view_index,
                other_view_indices=other_view_indices,
            )

        io_utils.save_multiview_tracks(self.parsed_args.output_path, multiview_tracks)
        logger.info("Found %d multiview tracks in %.2f sec.", len(multiview_tracks), time.time() - start_time)
        return multiview_tracks


def main(override_args: Optional[Sequence[str]] = None) -> None:
    MultiviewTrackFinderRunner(override_args).run()


if __name__ == "__main__":
    main()
