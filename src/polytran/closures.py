"""
Constitutive closures of the polymer transport model.

Water viscosity is modified by the polymer through the Todd-Longstaff mixing
rule. The water fractional flow and the polymer transport factor `mc` both
depend on it.
"""

import typing

import attrs
import numba

from polytran.polymer import PolymerProperties
from polytran.types import RelativePermeabilityModel

__all__ = [
    "PolymerFluidClosures",
    "compute_todd_longstaff_viscosities",
    "compute_fractional_flow",
]


@numba.njit(cache=True)
def compute_todd_longstaff_viscosities(
    concentration: float,
    c_max_limit: float,
    omega: float,
    water_viscosity: float,
    viscosity_multiplier: float,
    viscosity_multiplier_derivative: float,
    max_viscosity_multiplier: float,
) -> typing.Tuple[float, float, float, float]:
    """
    Effective water and polymer solution viscosities from the Todd-Longstaff
    mixing rule, and their concentration derivatives.

    mu_m = mult(c) * mu_w
    mu_p = mult(c_max_limit) * mu_w
    mu_w_eff = mu_m^omega * mu_w^(1 - omega)
    mu_p_eff = mu_m^omega * mu_p^(1 - omega)
    1 / mu_w_eff_mixed = (1 - c / c_max_limit) / mu_w_eff + (c / c_max_limit) / mu_p_eff

    :param concentration: Polymer concentration.
    :param c_max_limit: Maximum polymer concentration.
    :param omega: Mixing exponent.
    :param water_viscosity: Viscosity of polymer free water.
    :param viscosity_multiplier: mult(c).
    :param viscosity_multiplier_derivative: d mult / dc at c.
    :param max_viscosity_multiplier: mult(c_max_limit).
    :return: (1 / mu_w_eff_mixed, d(1 / mu_w_eff_mixed)/dc, mu_p_eff, d mu_p_eff / dc)
    """
    mu_m = viscosity_multiplier * water_viscosity
    dmu_m_dc = viscosity_multiplier_derivative * water_viscosity
    mu_p = max_viscosity_multiplier * water_viscosity

    mu_m_omega = mu_m**omega
    dmu_m_omega_dc = omega * mu_m ** (omega - 1.0) * dmu_m_dc
    water_factor = water_viscosity ** (1.0 - omega)
    polymer_factor = mu_p ** (1.0 - omega)

    mu_w_eff = mu_m_omega * water_factor
    dmu_w_eff_dc = dmu_m_omega_dc * water_factor
    mu_p_eff = mu_m_omega * polymer_factor
    dmu_p_eff_dc = dmu_m_omega_dc * polymer_factor

    normalized_concentration = concentration / c_max_limit
    inv_mu_w_eff = (1.0 - normalized_concentration) / mu_w_eff + (
        normalized_concentration / mu_p_eff
    )
    dinv_mu_w_eff_dc = (
        -(1.0 - normalized_concentration) * dmu_w_eff_dc / (mu_w_eff * mu_w_eff)
        - normalized_concentration * dmu_p_eff_dc / (mu_p_eff * mu_p_eff)
        + (1.0 / mu_p_eff - 1.0 / mu_w_eff) / c_max_limit
    )
    return inv_mu_w_eff, dinv_mu_w_eff_dc, mu_p_eff, dmu_p_eff_dc


@numba.njit(cache=True)
def compute_fractional_flow(
    water_relative_permeability: float,
    oil_relative_permeability: float,
    water_relative_permeability_derivative: float,
    oil_relative_permeability_derivative: float,
    inv_mu_w_eff: float,
    dinv_mu_w_eff_dc: float,
    oil_viscosity: float,
) -> typing.Tuple[float, float, float]:
    """
    Water fractional flow f = mob_w / (mob_w + mob_o) and its derivatives.

    :return: (f, df/ds, df/dc)
    """
    water_mobility = water_relative_permeability * inv_mu_w_eff
    oil_mobility = oil_relative_permeability / oil_viscosity
    total_mobility = water_mobility + oil_mobility
    if total_mobility <= 0.0:
        return 0.0, 0.0, 0.0

    dwater_mobility_ds = water_relative_permeability_derivative * inv_mu_w_eff
    dwater_mobility_dc = water_relative_permeability * dinv_mu_w_eff_dc
    doil_mobility_ds = oil_relative_permeability_derivative / oil_viscosity

    total_mobility_squared = total_mobility * total_mobility
    fractional_flow = water_mobility / total_mobility
    df_ds = (
        dwater_mobility_ds * oil_mobility - doil_mobility_ds * water_mobility
    ) / total_mobility_squared
    df_dc = dwater_mobility_dc * oil_mobility / total_mobility_squared
    return fractional_flow, df_ds, df_dc


@attrs.frozen
class PolymerFluidClosures:
    """
    Fluid closures of the water-oil-polymer system.

    Combines the polymer properties, the relative permeability model and the
    water and oil viscosities into the fractional flow and polymer transport
    factor used by the cell residuals.
    """

    polymer: PolymerProperties
    """Polymer property set."""
    relperm: RelativePermeabilityModel
    """Water-oil relative permeability model."""
    water_viscosity: float = attrs.field(validator=attrs.validators.gt(0.0))
    """Viscosity of polymer free water."""
    oil_viscosity: float = attrs.field(validator=attrs.validators.gt(0.0))
    """Oil viscosity."""

    def _viscosities(self, concentration: float) -> typing.Tuple[float, float, float, float]:
        polymer = self.polymer
        multiplier, dmultiplier = polymer.viscosity_multiplier_with_derivative(concentration)
        max_multiplier = polymer.viscosity_multiplier(polymer.c_max_limit)
        return compute_todd_longstaff_viscosities(
            concentration,
            polymer.c_max_limit,
            polymer.omega,
            self.water_viscosity,
            multiplier,
            dmultiplier,
            max_multiplier,
        )

    def fractional_flow(self, saturation: float, concentration: float, cell: int) -> float:
        """
        Water fractional flow.

        :param saturation: Water saturation.
        :param concentration: Polymer concentration.
        :param cell: Cell index, passed on to the relative permeability model.
        :return: f in [0, 1]
        """
        inv_mu_w_eff, _, _, _ = self._viscosities(concentration)
        krw, kro = self.relperm.relative_permeabilities(saturation, cell)
        fractional_flow, _, _ = compute_fractional_flow(
            krw, kro, 0.0, 0.0, inv_mu_w_eff, 0.0, self.oil_viscosity
        )
        return fractional_flow

    def fractional_flow_with_derivatives(
        self, saturation: float, concentration: float, cell: int
    ) -> typing.Tuple[float, typing.Tuple[float, float]]:
        """
        Water fractional flow and its partial derivatives.

        :param saturation: Water saturation.
        :param concentration: Polymer concentration.
        :param cell: Cell index, passed on to the relative permeability model.
        :return: (f, (df/ds, df/dc))
        """
        inv_mu_w_eff, dinv_mu_w_eff_dc, _, _ = self._viscosities(concentration)
        (krw, kro), (dkrw, dkro) = self.relperm.relative_permeabilities_with_derivatives(
            saturation, cell
        )
        fractional_flow, df_ds, df_dc = compute_fractional_flow(
            krw, kro, dkrw, dkro, inv_mu_w_eff, dinv_mu_w_eff_dc, self.oil_viscosity
        )
        return fractional_flow, (df_ds, df_dc)

    def compute_mc(self, concentration: float) -> float:
        """
        Polymer transport factor mc = c * mu_w_eff_mixed / mu_p_eff.

        This is the polymer concentration carried by a unit of flowing water.
        """
        inv_mu_w_eff, _, mu_p_eff, _ = self._viscosities(concentration)
        return concentration / (inv_mu_w_eff * mu_p_eff)

    def compute_mc_with_derivative(
        self, concentration: float
    ) -> typing.Tuple[float, float]:
        """
        :return: (mc, dmc/dc)
        """
        inv_mu_w_eff, dinv_mu_w_eff_dc, mu_p_eff, dmu_p_eff_dc = self._viscosities(
            concentration
        )
        denominator = inv_mu_w_eff * mu_p_eff
        ddenominator_dc = dinv_mu_w_eff_dc * mu_p_eff + inv_mu_w_eff * dmu_p_eff_dc
        mc = concentration / denominator
        dmc_dc = 1.0 / denominator - concentration * ddenominator_dc / (
            denominator * denominator
        )
        return mc, dmc_dc
