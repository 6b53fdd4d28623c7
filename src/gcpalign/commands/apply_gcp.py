from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from gcpalign.core.alignment_engine import AlignmentEstimator, AlignmentReport
from gcpalign.core.estimators import EstimatorFactory
from gcpalign.core.geo_map import GeoMapperFactory
from gcpalign.core.local_frame import LocalGeoCS
from gcpalign.core.transform import transform_cameras, transform_landmarks
from gcpalign.core.triangulation import TriangulatorFactory
from gcpalign.domain.types import CameraMap, LandmarkMap, TrackMap
from gcpalign.exceptions import ConfigError
from gcpalign.io.geo_origin import GeoOriginStore
from gcpalign.io.inputs import load_input_cameras_krtd, read_image_list
from gcpalign.io.krtd import write_krtd_file
from gcpalign.io.ply import read_ply_file, write_ply_file
from gcpalign.io.pos import update_ins_from_cameras, write_pos_file
from gcpalign.io.reference_points import load_reference_file
from gcpalign.logging_setup import scoped_timer
from gcpalign.models import ApplyGCPConfig, check_config

_logger = logging.getLogger(__name__)


@dataclass
class ApplyGCPResult:
    frame2filename: List[str]
    frame: LocalGeoCS
    cameras: CameraMap
    landmarks: LandmarkMap
    report: AlignmentReport
    origin_loaded: bool = False
    origin_written: bool = False
    written: List[Path] = field(default_factory=list)
    failed: List[Path] = field(default_factory=list)


def build_alignment_estimator(config: ApplyGCPConfig, logger: Optional[logging.Logger] = None) -> AlignmentEstimator:
    triangulator = TriangulatorFactory.create(config.triangulator, logger=logger)
    st_estimator = EstimatorFactory.create_similarity(config.st_estimator) if config.st_estimator else None
    can_estimator = (
        EstimatorFactory.create_canonical(config.can_tfm_estimator, estimate_scale=config.estimate_scale)
        if config.can_tfm_estimator else None
    )
    return AlignmentEstimator.from_components(
        triangulator=triangulator,
        similarity_estimator=st_estimator,
        canonical_estimator=can_estimator,
        logger=logger,
    )


def _write_artifact(result: ApplyGCPResult, path: Path, writer: Callable[[], None], log: logging.Logger) -> None:
    try:
        writer()
    except OSError as e:
        log.error("Could not write %s: %s", path, e)
        result.failed.append(path)
    else:
        result.written.append(path)


def _write_outputs(config: ApplyGCPConfig, result: ApplyGCPResult, log: logging.Logger) -> None:
    names = result.frame2filename

    if config.output_ply_file:
        with scoped_timer("writing output PLY file", log):
            path = Path(config.output_ply_file)
            _write_artifact(result, path, lambda: write_ply_file(result.landmarks, path), log)

    if config.output_pos_dir:
        log.info("Writing output POS files")
        with scoped_timer("writing output POS files", log):
            ins_map = update_ins_from_cameras(result.cameras, result.frame, names, logger=log)
            for fid, ins in ins_map.items():
                path = Path(config.output_pos_dir) / f"{names[fid]}.pos"
                _write_artifact(result, path, lambda ins=ins, path=path: write_pos_file(ins, path), log)
            if not ins_map:
                log.warning("INS map empty, no output POS files written")

    if config.output_krtd_dir:
        log.info("Writing output KRTD files")
        with scoped_timer("writing output KRTD files", log):
            for fid, cam in sorted(result.cameras.items()):
                path = Path(config.output_krtd_dir) / f"{names[fid]}.krtd"
                _write_artifact(result, path, lambda cam=cam, path=path: write_krtd_file(cam, path), log)

    if config.output_transform_file:
        path = Path(config.output_transform_file)

        def _save_transform() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(result.report.transform.save(strategy=result.report.strategy), encoding="utf-8")

        _write_artifact(result, path, _save_transform, log)

    if config.output_residuals_file:
        path = Path(config.output_residuals_file)
        if result.report.residuals is None:
            log.warning("No reference residuals to write to %s", path)
        else:
            def _save_residuals() -> None:
                path.parent.mkdir(parents=True, exist_ok=True)
                result.report.residuals.to_csv(path, index=False)

            _write_artifact(result, path, _save_residuals, log)


def run(config: ApplyGCPConfig, logger: Optional[logging.Logger] = None) -> ApplyGCPResult:
    """
    Moves a local reconstruction (KRTD cameras + PLY landmarks) into the
    geographic local frame and writes the results.
    """
    log = logger or _logger

    errors = check_config(config)
    if errors:
        raise ConfigError(errors)

    frame2filename, filename2frame = read_image_list(config.image_list_file)

    # --- Local coordinate system ---
    frame = LocalGeoCS(GeoMapperFactory.create(config.geo_mapper), logger=log)
    origin_store = GeoOriginStore(config.geo_origin_file or None, logger=log)
    origin_loaded = origin_store.load_into(frame)

    # --- Cameras and landmarks ---
    cameras: CameraMap = {}
    if config.input_krtd_files:
        with scoped_timer("Initializing cameras from KRTD files", log):
            cameras = load_input_cameras_krtd(config.input_krtd_files, filename2frame, logger=log)

    landmarks: LandmarkMap = {}
    if config.input_ply_file:
        landmarks = read_ply_file(config.input_ply_file)
        log.info("Loaded %d landmarks from %s", len(landmarks), config.input_ply_file)

    reference_landmarks: LandmarkMap = {}
    reference_tracks: TrackMap = {}
    if config.input_reference_points_file:
        reference_landmarks, reference_tracks = load_reference_file(
            config.input_reference_points_file, frame, logger=log
        )

    origin_written = False
    try:
        origin_written = origin_store.persist(frame)
    except OSError as e:
        log.error("Could not write geo origin file %s: %s", config.geo_origin_file, e)

    # --- Alignment ---
    frame.lock()
    estimator = build_alignment_estimator(config, logger=log)
    with scoped_timer("similarity transform estimation and application", log):
        log.info("Estimating similarity transform from local space to the reference frame")
        report = estimator.estimate_with_report(cameras, landmarks, reference_landmarks, reference_tracks)
        log.info("Applying %s transform to cameras and landmarks", report.strategy)
        aligned_cameras = transform_cameras(cameras, report.transform)
        aligned_landmarks = transform_landmarks(landmarks, report.transform)

    result = ApplyGCPResult(
        frame2filename=frame2filename,
        frame=frame,
        cameras=aligned_cameras,
        landmarks=aligned_landmarks,
        report=report,
        origin_loaded=origin_loaded,
        origin_written=origin_written,
    )
    _write_outputs(config, result, log)
    return result
