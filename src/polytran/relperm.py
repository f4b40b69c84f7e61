"""Two-phase (water-oil) relative permeability models with saturation derivatives."""

import typing

import attrs
import numba
import numpy as np
import numpy.typing as npt

from polytran.errors import ValidationError
from polytran.utils import as_float_array, interpolate_with_derivative


__all__ = [
    "TwoPhaseRelPermTable",
    "BrooksCoreyTwoPhaseRelPermModel",
    "compute_corey_two_phase_relative_permeabilities",
]


@numba.njit(cache=True)
def compute_corey_two_phase_relative_permeabilities(
    water_saturation: float,
    irreducible_water_saturation: float,
    residual_oil_saturation: float,
    water_exponent: float,
    oil_exponent: float,
    max_water_relative_permeability: float,
    max_oil_relative_permeability: float,
) -> typing.Tuple[float, float, float, float]:
    """
    Corey-type water and oil relative permeabilities of a water-wet system,
    with their derivatives with respect to water saturation.

    krw = krw_max * Se^nw
    kro = kro_max * (1 - Se)^no

    where Se = (Sw - Swc) / (1 - Swc - Sorw), clipped to [0, 1].

    :param water_saturation: Water saturation (fraction).
    :param irreducible_water_saturation: Irreducible water saturation (Swc).
    :param residual_oil_saturation: Residual oil saturation after water flood (Sorw).
    :param water_exponent: Corey exponent for water relative permeability.
    :param oil_exponent: Corey exponent for oil relative permeability.
    :param max_water_relative_permeability: Water end point relative permeability.
    :param max_oil_relative_permeability: Oil end point relative permeability.
    :return: (krw, kro, dkrw/dSw, dkro/dSw)
    """
    movable_range = 1.0 - irreducible_water_saturation - residual_oil_saturation
    if movable_range <= 1e-6:
        return 0.0, 0.0, 0.0, 0.0

    effective_saturation = (water_saturation - irreducible_water_saturation) / movable_range
    if effective_saturation <= 0.0:
        return 0.0, max_oil_relative_permeability, 0.0, 0.0
    if effective_saturation >= 1.0:
        return max_water_relative_permeability, 0.0, 0.0, 0.0

    krw = max_water_relative_permeability * effective_saturation**water_exponent
    kro = max_oil_relative_permeability * (1.0 - effective_saturation) ** oil_exponent
    dkrw = (
        max_water_relative_permeability
        * water_exponent
        * effective_saturation ** (water_exponent - 1.0)
        / movable_range
    )
    dkro = (
        -max_oil_relative_permeability
        * oil_exponent
        * (1.0 - effective_saturation) ** (oil_exponent - 1.0)
        / movable_range
    )
    return krw, kro, dkrw, dkro


@attrs.frozen
class BrooksCoreyTwoPhaseRelPermModel:
    """
    Brooks-Corey-type two-phase relative permeability model for a water-wet
    water-oil system.

    The admissible water saturation range is [Swc, 1 - Sorw].
    """

    irreducible_water_saturation: float = attrs.field(
        default=0.0,
        converter=float,
        validator=attrs.validators.and_(attrs.validators.ge(0), attrs.validators.lt(1)),
    )
    """Irreducible water saturation (Swc)."""
    residual_oil_saturation: float = attrs.field(
        default=0.0,
        converter=float,
        validator=attrs.validators.and_(attrs.validators.ge(0), attrs.validators.lt(1)),
    )
    """Residual oil saturation after water flood (Sorw)."""
    water_exponent: float = attrs.field(
        default=2.0, converter=float, validator=attrs.validators.gt(0)
    )
    """Corey exponent for water relative permeability."""
    oil_exponent: float = attrs.field(
        default=2.0, converter=float, validator=attrs.validators.gt(0)
    )
    """Corey exponent for oil relative permeability."""
    max_water_relative_permeability: float = attrs.field(
        default=1.0, converter=float, validator=attrs.validators.gt(0)
    )
    """Water relative permeability at residual oil saturation."""
    max_oil_relative_permeability: float = attrs.field(
        default=1.0, converter=float, validator=attrs.validators.gt(0)
    )
    """Oil relative permeability at irreducible water saturation."""

    def __attrs_post_init__(self) -> None:
        if self.irreducible_water_saturation + self.residual_oil_saturation >= 1.0:
            raise ValidationError(
                "Irreducible water and residual oil saturations must sum to less than 1. "
                f"Got {self.irreducible_water_saturation} + {self.residual_oil_saturation}"
            )

    def relative_permeabilities(
        self, water_saturation: float, cell: int = 0
    ) -> typing.Tuple[float, float]:
        """
        Compute water and oil relative permeabilities.

        :param water_saturation: Water saturation (fraction).
        :param cell: Cell index, unused since the model is the same everywhere.
        :return: (krw, kro)
        """
        krw, kro, _, _ = compute_corey_two_phase_relative_permeabilities(
            water_saturation,
            self.irreducible_water_saturation,
            self.residual_oil_saturation,
            self.water_exponent,
            self.oil_exponent,
            self.max_water_relative_permeability,
            self.max_oil_relative_permeability,
        )
        return krw, kro

    def relative_permeabilities_with_derivatives(
        self, water_saturation: float, cell: int = 0
    ) -> typing.Tuple[typing.Tuple[float, float], typing.Tuple[float, float]]:
        """
        Compute water and oil relative permeabilities and their water saturation derivatives.

        :param water_saturation: Water saturation (fraction).
        :param cell: Cell index, unused since the model is the same everywhere.
        :return: ((krw, kro), (dkrw/dSw, dkro/dSw))
        """
        krw, kro, dkrw, dkro = compute_corey_two_phase_relative_permeabilities(
            water_saturation,
            self.irreducible_water_saturation,
            self.residual_oil_saturation,
            self.water_exponent,
            self.oil_exponent,
            self.max_water_relative_permeability,
            self.max_oil_relative_permeability,
        )
        return (krw, kro), (dkrw, dkro)

    def saturation_range(self) -> typing.Tuple[float, float]:
        """:return: (Swc, 1 - Sorw)"""
        return (
            self.irreducible_water_saturation,
            1.0 - self.residual_oil_saturation,
        )


@attrs.frozen
class TwoPhaseRelPermTable:
    """
    Water-oil relative permeability lookup table.

    Interpolates water and oil relative permeabilities linearly in water
    saturation. The admissible water saturation range is the table range.
    """

    water_saturation: npt.NDArray[np.floating] = attrs.field(converter=as_float_array)
    """Water saturation values, ranging from 0 to 1, strictly increasing."""
    water_relative_permeability: npt.NDArray[np.floating] = attrs.field(
        converter=as_float_array
    )
    """Water relative permeability at each saturation value."""
    oil_relative_permeability: npt.NDArray[np.floating] = attrs.field(
        converter=as_float_array
    )
    """Oil relative permeability at each saturation value."""

    def __attrs_post_init__(self) -> None:
        """Validate table data."""
        if len(self.water_saturation) != len(self.water_relative_permeability):
            raise ValidationError(
                f"Saturation and water kr arrays must have same length. "
                f"Got {len(self.water_saturation)} vs {len(self.water_relative_permeability)}"
            )
        if len(self.water_saturation) != len(self.oil_relative_permeability):
            raise ValidationError(
                f"Saturation and oil kr arrays must have same length. "
                f"Got {len(self.water_saturation)} vs {len(self.oil_relative_permeability)}"
            )
        if len(self.water_saturation) < 2:
            raise ValidationError("At least 2 points required for interpolation")
        if not np.all(np.diff(self.water_saturation) > 0):
            raise ValidationError("Water saturation must be strictly increasing")
        if np.any((self.water_saturation < 0) | (self.water_saturation > 1)):
            raise ValidationError("Saturations must be between 0 and 1.")

    def relative_permeabilities(
        self, water_saturation: float, cell: int = 0
    ) -> typing.Tuple[float, float]:
        """
        :param water_saturation: Water saturation (fraction).
        :param cell: Cell index, unused.
        :return: (krw, kro)
        """
        krw, _ = interpolate_with_derivative(
            water_saturation, self.water_saturation, self.water_relative_permeability
        )
        kro, _ = interpolate_with_derivative(
            water_saturation, self.water_saturation, self.oil_relative_permeability
        )
        return krw, kro

    def relative_permeabilities_with_derivatives(
        self, water_saturation: float, cell: int = 0
    ) -> typing.Tuple[typing.Tuple[float, float], typing.Tuple[float, float]]:
        """
        :param water_saturation: Water saturation (fraction).
        :param cell: Cell index, unused.
        :return: ((krw, kro), (dkrw/dSw, dkro/dSw))
        """
        krw, dkrw = interpolate_with_derivative(
            water_saturation, self.water_saturation, self.water_relative_permeability
        )
        kro, dkro = interpolate_with_derivative(
            water_saturation, self.water_saturation, self.oil_relative_permeability
        )
        return (krw, kro), (dkrw, dkro)

    def saturation_range(self) -> typing.Tuple[float, float]:
        """:return: First and last table saturation."""
        return float(self.water_saturation[0]), float(self.water_saturation[-1])
