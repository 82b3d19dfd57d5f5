from __future__ import annotations

"""
Surface composition: land/ocean/ice area fractions and their blending.

Purpose
- Keep one cached SurfaceMasks object per coupled run. It is recomputed
  explicitly by update_surface_fractions (e.g. after a sea-ice update) and
  never implicitly inside combine_surfaces.
- combine_surfaces blends per-surface values into the one combined field the
  atmosphere sees:

      combined[col] = sum_type mask[type][col] * value[type][col]

Notes
- Land fraction is static. Ice takes what the sea-ice concentration asks for
  (capped by the non-land area); the ocean takes the remainder.
- A column whose masks sum to zero is a data error and is reported, not
  divided by.
"""

from dataclasses import dataclass

import numpy as np

from ..errors import SurfaceFractionError
from .fields import FieldTag

SURFACE_TYPES: tuple[str, ...] = ("land", "ocean", "ice")

PARTITION_ATOL = 1e-10


@dataclass
class SurfaceMasks:
    land: np.ndarray
    ocean: np.ndarray
    ice: np.ndarray
    stale: bool = False

    def as_dict(self) -> dict[str, np.ndarray]:
        return {"land": self.land, "ocean": self.ocean, "ice": self.ice}

    def total(self) -> np.ndarray:
        return self.land + self.ocean + self.ice

    def invalidate(self) -> None:
        self.stale = True

    def validate(self, atol: float = PARTITION_ATOL) -> None:
        for kind, m in self.as_dict().items():
            if not np.all(np.isfinite(m)):
                raise SurfaceFractionError(f"{kind} fraction contains non-finite values")
            if np.any(m < -atol) or np.any(m > 1.0 + atol):
                raise SurfaceFractionError(
                    f"{kind} fraction outside [0, 1]: min={float(np.min(m)):.3g}, max={float(np.max(m)):.3g}"
                )
        err = np.abs(self.total() - 1.0)
        if np.any(err > atol):
            j, i = np.unravel_index(int(np.argmax(err)), err.shape)
            raise SurfaceFractionError(
                f"surface fractions do not partition to 1 (max |sum-1|={float(err[j, i]):.3g} at column ({j}, {i}))"
            )


def compute_surface_fractions(land_fraction, sea_ice_concentration) -> SurfaceMasks:
    """
    Land is static; ice = min(SIC, 1 - land); ocean = max(1 - land - ice, 0).
    """
    land = np.asarray(land_fraction, dtype=float)
    sic = np.clip(np.asarray(sea_ice_concentration, dtype=float), 0.0, 1.0)
    ice = np.minimum(sic, 1.0 - land)
    ocean = np.maximum(1.0 - land - ice, 0.0)
    return SurfaceMasks(land=land.copy(), ocean=ocean, ice=ice)


def update_surface_fractions(cs) -> SurfaceMasks:
    """
    Recompute the tri-region masks from the components' current fractions,
    validate the partition, hand the fractions back to ocean and ice, and
    replace the cached masks on `cs`.
    """
    sims = cs.model_sims
    land = sims.land.get_field(FieldTag.AREA_FRACTION)
    sic = sims.ice.get_field(FieldTag.AREA_FRACTION)
    masks = compute_surface_fractions(land, sic)
    masks.validate()
    sims.ice.update_field(FieldTag.AREA_FRACTION, masks.ice)
    sims.ocean.update_field(FieldTag.AREA_FRACTION, masks.ocean)
    cs.surface_masks = masks
    return masks


def combine_surfaces(masks: SurfaceMasks, values: dict[str, object]) -> np.ndarray:
    """
    Area-weighted blend of per-surface values (scalars or arrays).

    Masked-out surfaces never contribute, so a NaN sitting under a zero
    fraction does not leak into the combined field.
    """
    if masks.stale:
        raise SurfaceFractionError("surface masks are stale; call update_surface_fractions first")
    total = masks.total()
    empty = ~(total > 0.0)
    if np.any(empty):
        raise SurfaceFractionError(f"{int(np.sum(empty))} column(s) with zero combined surface mask")
    out = np.zeros_like(total)
    for kind in SURFACE_TYPES:
        m = getattr(masks, kind)
        v = values[kind]
        if np.ndim(v) != 0 and np.shape(v) != m.shape:
            raise SurfaceFractionError(f"{kind} value shape {np.shape(v)} does not match mask {m.shape}")
        out += np.where(m > 0.0, m * np.asarray(v, dtype=float), 0.0)
    return out


def combine_surface_field(cs, tag: FieldTag) -> np.ndarray:
    """Blend `tag` as reported by the land, ocean and ice simulations."""
    sims = cs.model_sims
    values = {kind: getattr(sims, kind).get_field(tag) for kind in SURFACE_TYPES}
    return combine_surfaces(cs.surface_masks, values)


def binary_mask(fraction, threshold: float = 0.0) -> np.ndarray:
    """1 where `fraction` exceeds `threshold`, else 0."""
    return (np.asarray(fraction, dtype=float) > threshold).astype(float)
