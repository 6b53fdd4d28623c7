import numpy as np
from typing import Mapping, Sequence, Tuple

from gcpalign.domain.types import Camera, Landmark, Track


def triangulate_dlt(projections: Sequence[np.ndarray], uvs: np.ndarray) -> np.ndarray:
    """Linear multi-view triangulation of one point from (3,4) projection matrices and (N,2) pixels."""
    n = len(projections)
    if n < 2 or uvs.shape != (n, 2):
        raise ValueError("At least 2 views with matching observations are required to triangulate.")

    A = np.zeros((2 * n, 4))
    for i, (P, (u, v)) in enumerate(zip(projections, uvs)):
        A[2 * i] = u * P[2] - P[0]
        A[2 * i + 1] = v * P[2] - P[1]

    # Row scaling keeps the SVD well conditioned for large pixel values
    norms = np.linalg.norm(A, axis=1, keepdims=True)
    A = A / np.where(norms > 0, norms, 1.0)

    _, _, Vt = np.linalg.svd(A)
    X_h = Vt[-1]
    if abs(X_h[3]) < 1e-12:
        return np.full(3, np.nan)
    return X_h[:3] / X_h[3]


def umeyama(src: np.ndarray, dst: np.ndarray) -> Tuple[float, np.ndarray, np.ndarray]:
    """Fit dst ≈ s R src + t in the least-squares sense. src, dst are (N,3)."""
    if src.shape != dst.shape or src.ndim != 2 or src.shape[1] != 3:
        raise ValueError("src and dst must be Nx3 with the same shape")
    n = src.shape[0]
    if n < 3:
        raise ValueError(f"At least 3 correspondences are required, got {n}")

    mu_src = src.mean(axis=0)
    mu_dst = dst.mean(axis=0)
    src_c = src - mu_src
    dst_c = dst - mu_dst

    var_src = float((src_c ** 2).sum() / n)
    if var_src < 1e-15:
        raise ValueError("Degenerate geometry: source points are coincident")

    cov = (dst_c.T @ src_c) / float(n)
    U, D, Vt = np.linalg.svd(cov)

    S = np.eye(3)
    if np.linalg.det(U) * np.linalg.det(Vt) < 0:
        S[2, 2] = -1.0

    # A rank-1 covariance means collinear points; rotation about the line is free
    if np.linalg.matrix_rank(cov, tol=1e-9 * max(D[0], 1e-300)) < 2:
        raise ValueError("Degenerate geometry: correspondences are collinear")

    R = U @ S @ Vt
    s = float((D * np.diag(S)).sum() / var_src)
    t = mu_dst - s * (R @ mu_src)
    return s, R, t


def principal_frame(points: np.ndarray) -> Tuple[np.ndarray, np.ndarray, float]:
    """
    Returns (centroid, axes, rms) for (N,3) points.
    axes rows are principal directions sorted by decreasing variance and form
    a right-handed basis; rms is the RMS distance to the centroid.
    """
    if points.ndim != 2 or points.shape[1] != 3 or points.shape[0] < 3:
        raise ValueError("At least 3 points are required to compute a principal frame")
    centroid = points.mean(axis=0)
    centered = points - centroid
    cov = centered.T @ centered / points.shape[0]
    eigvals, eigvecs = np.linalg.eigh(cov)
    order = np.argsort(eigvals)[::-1]
    axes = eigvecs[:, order].T
    if np.linalg.det(axes) < 0:
        axes[2] = -axes[2]
    rms = float(np.sqrt(np.mean(np.sum(centered ** 2, axis=1))))
    return centroid, axes, rms


def reprojection_errors(
    cameras: Mapping[int, Camera],
    landmarks: Mapping[int, Landmark],
    tracks: Mapping[int, Track],
) -> np.ndarray:
    """Pixel distances for every track state whose landmark and camera both exist."""
    errors = []
    for tid in sorted(tracks):
        lm = landmarks.get(tid)
        if lm is None:
            continue
        for state in tracks[tid].states:
            cam = cameras.get(state.frame_id)
            if cam is None:
                continue
            uv = cam.project(lm.loc)[0]
            errors.append(np.hypot(uv[0] - state.u, uv[1] - state.v))
    return np.asarray(errors, dtype=float)


def reprojection_rmse(
    cameras: Mapping[int, Camera],
    landmarks: Mapping[int, Landmark],
    tracks: Mapping[int, Track],
) -> float:
    """RMSE of reprojection_errors(); NaN when nothing can be reprojected."""
    errors = reprojection_errors(cameras, landmarks, tracks)
    if errors.size == 0:
        return float("nan")
    return float(np.sqrt(np.mean(errors ** 2)))
