from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List, Mapping, Tuple

from gcpalign.core.estimators import EstimatorFactory
from gcpalign.core.geo_map import GeoMapperFactory
from gcpalign.core.triangulation import TriangulatorFactory

_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}

# attribute name -> configuration key
_KEYS = {
    "triangulator": "triangulator:type",
    "geo_mapper": "geo_mapper:type",
    "st_estimator": "st_estimator:type",
    "can_tfm_estimator": "can_tfm_estimator:type",
    "can_tfm_estimate_scale": "can_tfm_estimator:estimate_scale",
}

DESCRIPTIONS: Dict[str, str] = {
    "image_list_file": "Path to the input image list file used to generate the input tracks.",
    "input_ply_file": "Path to the PLY file from which to read 3D landmark points.",
    "input_krtd_files": (
        "A directory containing input KRTD camera files, or a text file containing\n"
        "a newline-separated list of KRTD files. Leave blank to ignore."
    ),
    "input_reference_points_file": (
        "File of reference points used to move the results into the geographic frame.\n"
        "Each line: lon lat alt frame u v [frame u v ...]\n"
        "At least 3 landmarks with at least 2 track states each are needed for\n"
        "the transform estimation to converge; more of each is recommended.\n"
        "Altitude is in meters. Takes priority over the canonical estimator."
    ),
    "geo_origin_file": (
        "Geographic origin of the local Cartesian frame (latitude longitude altitude).\n"
        "Read if it exists; otherwise written once an origin has been computed."
    ),
    "output_ply_file": "Path to the output PLY file of transformed landmarks.",
    "output_pos_dir": "A directory in which to write the output POS files.",
    "output_krtd_dir": "A directory in which to write the output KRTD files.",
    "output_transform_file": "Optional JSON file receiving the estimated similarity transform.",
    "output_residuals_file": "Optional CSV file receiving the reference point residuals.",
    "triangulator:type": "Triangulation algorithm: " + "|".join(TriangulatorFactory.available),
    "geo_mapper:type": "Geographic mapping algorithm: " + "|".join(GeoMapperFactory.available),
    "st_estimator:type": (
        "Similarity transform estimator used with reference points: "
        + "|".join(EstimatorFactory.similarity_methods) + " (blank disables)"
    ),
    "can_tfm_estimator:type": (
        "Canonical transform estimator used without reference points: "
        + "|".join(EstimatorFactory.canonical_methods) + " (blank disables)"
    ),
    "can_tfm_estimator:estimate_scale": "Normalise the landmark cloud to unit RMS radius (true|false).",
}


def _setting_fields():
    return [f for f in fields(ApplyGCPConfig) if f.name != "unknown_keys"]


@dataclass(frozen=True)
class ApplyGCPConfig:
    """
    Settings of the apply-gcp pipeline. An empty string disables an optional
    input, output or estimator.
    """
    image_list_file: str = ""
    input_ply_file: str = ""
    input_krtd_files: str = ""
    input_reference_points_file: str = ""
    geo_origin_file: str = "output/geo_origin.txt"
    output_ply_file: str = "output/landmarks.ply"
    output_pos_dir: str = "output/pos"
    output_krtd_dir: str = "output/krtd"
    output_transform_file: str = ""
    output_residuals_file: str = ""
    triangulator: str = "dlt"
    geo_mapper: str = "utm"
    st_estimator: str = ""
    can_tfm_estimator: str = ""
    can_tfm_estimate_scale: str = "true"
    # keys read but not recognised; reported by check_config
    unknown_keys: Tuple[str, ...] = field(default=(), compare=False)

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "ApplyGCPConfig":
        by_key = {_KEYS.get(f.name, f.name): f.name for f in _setting_fields()}
        unknown = tuple(sorted(k for k in values if k not in by_key))
        known = {by_key[k]: str(v).strip() for k, v in values.items() if k in by_key}
        return cls(unknown_keys=unknown, **known)

    def to_mapping(self) -> Dict[str, str]:
        return {_KEYS.get(f.name, f.name): getattr(self, f.name) for f in _setting_fields()}

    @property
    def estimate_scale(self) -> bool:
        return self.can_tfm_estimate_scale.lower() in _TRUE


def check_config(config: ApplyGCPConfig) -> List[str]:
    """Returns every configuration fault found (empty when the config is usable)."""
    errors: List[str] = []
    errors.extend(f"Unknown configuration key: {k}" for k in config.unknown_keys)

    if not config.image_list_file:
        errors.append("Not given an image list file")
    elif not Path(config.image_list_file).is_file():
        errors.append("Given image list file path doesn't point to an existing file.")

    if config.input_krtd_files and not Path(config.input_krtd_files).exists():
        errors.append("KRTD input path given, but does not point to an existing location.")
    if config.input_ply_file and not Path(config.input_ply_file).is_file():
        errors.append("Path given for input PLY file does not exist.")
    if config.input_reference_points_file and not Path(config.input_reference_points_file).is_file():
        errors.append("Path given for input reference points file does not exist.")
    if config.input_reference_points_file and not config.st_estimator:
        errors.append("Reference points file given, but no st_estimator:type to fit them with.")

    if config.triangulator not in TriangulatorFactory.available:
        errors.append(f"Unknown triangulator type: {config.triangulator!r}")
    if config.geo_mapper not in GeoMapperFactory.available:
        errors.append(f"Unknown geo_mapper type: {config.geo_mapper!r}")
    if config.st_estimator and config.st_estimator not in EstimatorFactory.similarity_methods:
        errors.append(f"Unknown st_estimator type: {config.st_estimator!r}")
    if config.can_tfm_estimator and config.can_tfm_estimator not in EstimatorFactory.canonical_methods:
        errors.append(f"Unknown can_tfm_estimator type: {config.can_tfm_estimator!r}")
    if config.can_tfm_estimate_scale.lower() not in _TRUE | _FALSE:
        errors.append(f"can_tfm_estimator:estimate_scale must be a boolean, got {config.can_tfm_estimate_scale!r}")

    return errors
