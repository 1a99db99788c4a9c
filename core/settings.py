#!/usr/bin/env python3
"""
Settings Module
Conversion options consumed by the space converter and the COLLADA exporter.
"""

import math
from dataclasses import dataclass
from enum import Enum

# Interpolation modes accepted by COLLADA samplers
INTERPOLATIONS = ("LINEAR", "STEP", "BEZIER", "HERMITE", "BSPLINE")


class UpAxis(Enum):
    """Target up axis declared in the COLLADA <asset> block"""
    Y = "Y"
    Z = "Z"

    @property
    def collada_name(self) -> str:
        return f"{self.value}_UP"


@dataclass(frozen=True)
class ConversionSettings:
    """Coordinate, unit and sampling options for one conversion

    The source engine is right-handed, Z-up. The defaults map it onto the
    Y-up convention most animation tools expect.

    Attributes:
        up_axis: Target up axis (Y or Z). Z keeps the source basis.
        unit_scale: Multiplier applied to every translation and vertex position
        flip_winding: Reverse triangle winding of mesh data
        interpolation: Sampler interpolation written for every keyframe. The
                       .lab format carries no interpolation data; LINEAR is
                       the documented default.
    """
    up_axis: UpAxis = UpAxis.Y
    unit_scale: float = 1.0
    flip_winding: bool = False
    interpolation: str = "LINEAR"

    def __post_init__(self):
        if isinstance(self.up_axis, str):
            object.__setattr__(self, 'up_axis', UpAxis(self.up_axis.upper()))
        if not math.isfinite(self.unit_scale) or self.unit_scale <= 0.0:
            raise ValueError(f"unit_scale must be a positive finite number, got {self.unit_scale}")
        interpolation = self.interpolation.upper()
        if interpolation not in INTERPOLATIONS:
            raise ValueError(
                f"Unsupported interpolation '{self.interpolation}' "
                f"(expected one of: {', '.join(INTERPOLATIONS)})"
            )
        object.__setattr__(self, 'interpolation', interpolation)
