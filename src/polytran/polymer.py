"""Polymer property set: viscosity multiplier and adsorption isotherm tables."""

import typing

import attrs
import numpy as np
import numpy.typing as npt

from polytran.errors import ValidationError
from polytran.types import AdsorptionBehaviour
from polytran.utils import as_float_array, interpolate_with_derivative

__all__ = ["PolymerProperties"]


def _validate_table(
    name: str, abscissae: npt.NDArray[np.floating], values: npt.NDArray[np.floating]
) -> None:
    if len(abscissae) != len(values):
        raise ValidationError(
            f"{name} concentration and value arrays must have same length. "
            f"Got {len(abscissae)} vs {len(values)}"
        )
    if len(abscissae) < 2:
        raise ValidationError(f"{name} table needs at least 2 points for interpolation")
    if not np.all(np.diff(abscissae) > 0):
        raise ValidationError(f"{name} concentrations must be strictly increasing")
    if np.any(abscissae < 0):
        raise ValidationError(f"{name} concentrations must be non-negative")


@attrs.frozen
class PolymerProperties:
    """
    Properties of the injected polymer, immutable for the run.

    Viscosity multiplier and adsorption are tabulated against concentration and
    linearly interpolated, held constant outside the table range.
    """

    c_max_limit: float = attrs.field(validator=attrs.validators.gt(0.0))
    """Maximum polymer concentration. Concentrations live in [0, c_max_limit]."""
    omega: float = attrs.field(
        validator=attrs.validators.and_(attrs.validators.ge(0.0), attrs.validators.le(1.0))
    )
    """Todd-Longstaff mixing exponent. 0 is fully segregated, 1 fully mixed."""
    rhor: float = attrs.field(validator=attrs.validators.ge(0.0))
    """Rock density (ratio) scaling the adsorbed polymer mass."""
    dps: float = attrs.field(
        validator=attrs.validators.and_(attrs.validators.ge(0.0), attrs.validators.lt(1.0))
    )
    """Dead pore space, the water saturation fraction not accessible to polymer."""
    viscosity_concentrations: npt.NDArray[np.floating] = attrs.field(
        converter=as_float_array
    )
    """Concentration nodes of the viscosity multiplier table."""
    viscosity_multipliers: npt.NDArray[np.floating] = attrs.field(
        converter=as_float_array
    )
    """Water viscosity multiplier at each node. Must be positive."""
    adsorption_concentrations: npt.NDArray[np.floating] = attrs.field(
        converter=as_float_array
    )
    """Concentration nodes of the adsorption isotherm."""
    adsorption_values: npt.NDArray[np.floating] = attrs.field(converter=as_float_array)
    """Adsorbed polymer per unit rock mass at each node."""
    adsorption_behaviour: AdsorptionBehaviour = attrs.field(
        default="no_desorption",
        validator=attrs.validators.in_(("no_desorption", "desorption")),
    )
    """
    'no_desorption': adsorption is irreversible and evaluated at the historical
    maximum concentration whenever the concentration drops below it.
    'desorption': adsorption follows the current concentration.
    """

    def __attrs_post_init__(self) -> None:
        """Validate table data."""
        _validate_table(
            "Viscosity", self.viscosity_concentrations, self.viscosity_multipliers
        )
        _validate_table(
            "Adsorption", self.adsorption_concentrations, self.adsorption_values
        )
        if np.any(self.viscosity_multipliers <= 0):
            raise ValidationError("Viscosity multipliers must be positive")

    def viscosity_multiplier(self, concentration: float) -> float:
        """Water viscosity multiplier at the given concentration."""
        return interpolate_with_derivative(
            concentration, self.viscosity_concentrations, self.viscosity_multipliers
        )[0]

    def viscosity_multiplier_with_derivative(
        self, concentration: float
    ) -> typing.Tuple[float, float]:
        """
        :return: (multiplier, d multiplier / dc)
        """
        return interpolate_with_derivative(
            concentration, self.viscosity_concentrations, self.viscosity_multipliers
        )

    def adsorption(self, concentration: float) -> float:
        """Adsorption isotherm value at the given concentration."""
        return interpolate_with_derivative(
            concentration, self.adsorption_concentrations, self.adsorption_values
        )[0]

    def adsorption_with_derivative(
        self, concentration: float
    ) -> typing.Tuple[float, float]:
        """
        :return: (adsorption, d adsorption / dc)
        """
        return interpolate_with_derivative(
            concentration, self.adsorption_concentrations, self.adsorption_values
        )

    def effective_adsorption(self, concentration: float, cmax: float) -> float:
        """
        Adsorption given the historical maximum concentration `cmax`.

        Without desorption, adsorbed polymer never goes back into solution, so
        the isotherm is evaluated at max(concentration, cmax).
        """
        if self.adsorption_behaviour == "no_desorption":
            return self.adsorption(max(concentration, cmax))
        return self.adsorption(concentration)

    def effective_adsorption_with_derivative(
        self, concentration: float, cmax: float
    ) -> typing.Tuple[float, float]:
        """
        Same as `effective_adsorption`, with the derivative with respect to
        the current concentration. The derivative is zero below `cmax` when
        adsorption is irreversible.
        """
        if self.adsorption_behaviour == "no_desorption" and concentration < cmax:
            return self.adsorption(cmax), 0.0
        return self.adsorption_with_derivative(concentration)
