from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import numpy as np

_ORTHO_TOL = 1e-6


@dataclass(frozen=True, eq=False)
class SimilarityTransform:
    """
    3-D similarity: X' = scale * rotation @ X + translation.
    Never mutated; composing or inverting returns a new instance.
    """
    scale: float = 1.0
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        scale = float(self.scale)
        if not np.isfinite(scale) or scale <= 0.0:
            raise ValueError(f"Similarity scale must be positive and finite, got {self.scale}")

        R = np.array(self.rotation, dtype=float)
        if R.shape != (3, 3):
            raise ValueError(f"Rotation must be 3x3, got shape {R.shape}")
        if not np.allclose(R.T @ R, np.eye(3), atol=_ORTHO_TOL) or np.linalg.det(R) < 0.0:
            raise ValueError("Rotation must be a proper orthonormal matrix")

        t = np.array(self.translation, dtype=float).reshape(3)
        if not np.all(np.isfinite(t)):
            raise ValueError("Translation must be finite")

        R.setflags(write=False)
        t.setflags(write=False)
        object.__setattr__(self, "scale", scale)
        object.__setattr__(self, "rotation", R)
        object.__setattr__(self, "translation", t)

    @classmethod
    def identity(cls) -> "SimilarityTransform":
        return cls()

    def apply(self, points: np.ndarray) -> np.ndarray:
        """Vectorized application to a (3,) point or (N,3) array."""
        pts = np.asarray(points, dtype=float)
        return self.scale * (pts @ self.rotation.T) + self.translation

    def inverse(self) -> "SimilarityTransform":
        inv_s = 1.0 / self.scale
        R_inv = self.rotation.T
        return SimilarityTransform(scale=inv_s, rotation=R_inv, translation=-inv_s * (R_inv @ self.translation))

    def compose(self, other: "SimilarityTransform") -> "SimilarityTransform":
        """Return self ∘ other (apply `other` first)."""
        return SimilarityTransform(
            scale=self.scale * other.scale,
            rotation=self.rotation @ other.rotation,
            translation=self.scale * (self.rotation @ other.translation) + self.translation,
        )

    def __matmul__(self, other: "SimilarityTransform") -> "SimilarityTransform":
        return self.compose(other)

    def matrix(self) -> np.ndarray:
        M = np.eye(4)
        M[:3, :3] = self.scale * self.rotation
        M[:3, 3] = self.translation
        return M

    def is_identity(self, atol: float = 1e-12) -> bool:
        return bool(np.allclose(self.matrix(), np.eye(4), atol=atol))

    def rotation_angle_deg(self) -> float:
        c = np.clip((np.trace(self.rotation) - 1.0) / 2.0, -1.0, 1.0)
        return float(np.degrees(np.arccos(c)))

    def __str__(self) -> str:
        t = ", ".join(f"{v:.6f}" for v in self.translation)
        return f"scale={self.scale:.9g} rotation={self.rotation_angle_deg():.6f} deg translation=({t})"

    def save(self, strategy: Optional[str] = None) -> str:
        """Serializes the transform to a JSON string."""
        data = {
            "method": "similarity3d",
            "timestamp": datetime.now().isoformat(),
            "strategy": strategy,
            "parameters": {
                "scale": self.scale,
                "rotation": self.rotation.tolist(),
                "translation": self.translation.tolist(),
            },
        }
        return json.dumps(data, indent=4)

    @classmethod
    def load(cls, json_str: str) -> "SimilarityTransform":
        data = json.loads(json_str)
        if data.get("method") != "similarity3d":
            raise ValueError(f"Invalid method in transform file: {data.get('method')}")
        params = data.get("parameters") or {}
        missing = {"scale", "rotation", "translation"} - set(params)
        if missing:
            raise ValueError(f"Missing parameters in the loaded transform: {sorted(missing)}")
        return cls(scale=params["scale"], rotation=params["rotation"], translation=params["translation"])
