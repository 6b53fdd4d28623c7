from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Tuple, Union

import numpy as np
import pandas as pd

from gcpalign.domain.types import Landmark, LandmarkMap
from gcpalign.exceptions import ParseError

_ID_COLUMNS = ("track_id", "indices", "id")


def _read_header(path: Path, f) -> Tuple[int, List[str]]:
    if f.readline().strip() != "ply":
        raise ParseError(path, "not a PLY file")

    n_vertices = None
    props: List[str] = []
    element = None
    for line in f:
        tokens = line.split()
        if not tokens or tokens[0] == "comment" or tokens[0] == "obj_info":
            continue
        if tokens[0] == "end_header":
            break
        if tokens[0] == "format":
            if len(tokens) < 2 or tokens[1] != "ascii":
                raise ParseError(path, f"only ASCII PLY is supported, got {' '.join(tokens[1:])!r}")
        elif tokens[0] == "element":
            if len(tokens) != 3 or not tokens[2].isdigit():
                raise ParseError(path, f"malformed element line {line.strip()!r}")
            element = tokens[1]
            if element == "vertex":
                n_vertices = int(tokens[2])
        elif tokens[0] == "property" and element == "vertex":
            if len(tokens) < 3:
                raise ParseError(path, f"malformed property line {line.strip()!r}")
            if tokens[1] == "list":
                raise ParseError(path, "list properties on vertices are not supported")
            props.append(tokens[-1])
    else:
        raise ParseError(path, "missing end_header")

    if n_vertices is None:
        raise ParseError(path, "no vertex element")
    if not {"x", "y", "z"}.issubset(props):
        raise ParseError(path, f"vertex element needs x, y, z properties (got {props})")
    return n_vertices, props


def read_ply_file(path: Union[str, Path]) -> LandmarkMap:
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        n, props = _read_header(path, f)
        if n == 0:
            return {}
        try:
            df = pd.read_csv(f, sep=r"\s+", header=None, names=props, nrows=n)
        except (ValueError, pd.errors.ParserError) as e:
            raise ParseError(path, f"bad vertex data: {e}")

    if len(df) != n or df[["x", "y", "z"]].isna().any().any():
        raise ParseError(path, f"expected {n} complete vertices, got {len(df)}")

    id_col = next((c for c in _ID_COLUMNS if c in df.columns), None)
    ids = df[id_col].astype(int).tolist() if id_col else list(range(n))
    has_color = {"red", "green", "blue"}.issubset(df.columns)

    xyz = df[["x", "y", "z"]].to_numpy(dtype=float)
    rgb = df[["red", "green", "blue"]].to_numpy(dtype=int) if has_color else None
    landmarks: LandmarkMap = {}
    for row, lm_id in enumerate(ids):
        color = tuple(rgb[row]) if rgb is not None else (255, 255, 255)
        landmarks[lm_id] = Landmark(loc=xyz[row], color=color)
    return landmarks


def write_ply_file(landmarks: Mapping[int, Landmark], path: Union[str, Path]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    ids = sorted(landmarks)

    xyz = np.array([landmarks[i].loc for i in ids], dtype=float).reshape(-1, 3)
    rgb = np.array([landmarks[i].color for i in ids], dtype=int).reshape(-1, 3)
    df = pd.DataFrame({
        "x": xyz[:, 0], "y": xyz[:, 1], "z": xyz[:, 2],
        "red": rgb[:, 0], "green": rgb[:, 1], "blue": rgb[:, 2],
        "track_id": ids,
    })

    header = [
        "ply",
        "format ascii 1.0",
        f"element vertex {len(df)}",
        "property double x",
        "property double y",
        "property double z",
        "property uchar red",
        "property uchar green",
        "property uchar blue",
        "property uint track_id",
        "end_header",
    ]
    with path.open("w", encoding="utf-8", newline="\n") as f:
        f.write("\n".join(header) + "\n")
        df.to_csv(f, sep=" ", header=False, index=False, float_format="%.12g", lineterminator="\n")
