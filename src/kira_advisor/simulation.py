"""Deterministic financial simulations over already-fetched ledger data.

Nothing here performs I/O. Inputs are floats as stored; arithmetic is done in
Decimal so money results are exact and rounding is explicit.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from kira_advisor.models import GreenAsset

DEFAULT_ANNUAL_EMISSIONS = Decimal("1000")  # tonnes CO2e
DEFAULT_MONTHLY_ENERGY_KWH = Decimal("5000")
DEFAULT_ENERGY_OFFSET_PERCENT = Decimal("0.3")
DEFAULT_LIFETIME_YEARS = Decimal("20")
DEFAULT_INDUSTRY_INTENSITY = Decimal("0.0002")  # kg CO2e per RM
ELECTRICITY_TARIFF_RM_PER_KWH = Decimal("0.5")
CORPORATE_TAX_RATE = Decimal("0.24")
PAYBACK_SENTINEL_YEARS = Decimal("99")

BETTER = "Better (Lower Carbon)"
WORSE = "Worse (Higher Carbon)"


def _dec(value: float | int | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _or_default(value: float | int | Decimal | None, default: Decimal) -> Decimal:
    """Return ``value`` as Decimal, or ``default`` when it is missing or zero."""
    if not value:
        return default
    return _dec(value)


@dataclass(frozen=True)
class TaxImpact:
    """Carbon tax liability before and after applying GITA credits."""

    gross_liability: Decimal
    net_liability_after_gita: Decimal
    savings_from_gita: Decimal

    def to_dict(self) -> dict[str, float]:
        return {
            "grossLiability": float(self.gross_liability),
            "netLiabilityAfterGITA": float(self.net_liability_after_gita),
            "savingsFromGITA": float(self.savings_from_gita),
        }


@dataclass(frozen=True)
class InvestmentOutcome:
    """Payback and return figures for one green asset."""

    payback_period_years: Decimal
    annual_savings_rm: Decimal
    tax_savings_rm: Decimal
    lifetime_roi: Decimal

    def to_dict(self) -> dict[str, float]:
        return {
            "paybackPeriodYears": float(self.payback_period_years),
            "annualSavingsRM": float(self.annual_savings_rm),
            "taxSavingsRM": float(self.tax_savings_rm),
            "lifetimeROI": float(self.lifetime_roi),
        }


@dataclass(frozen=True)
class Benchmark:
    """A business's carbon intensity against its industry average."""

    user_intensity: Decimal
    industry_average: Decimal
    performance: str
    percent_diff: int

    @property
    def message(self) -> str:
        return f"{self.percent_diff}% {self.performance} than industry average."

    def to_dict(self) -> dict[str, float | str]:
        return {
            "userIntensity": float(self.user_intensity),
            "industryAverage": float(self.industry_average),
            "performance": self.message,
        }


def forecast_tax_impact(
    proposed_tax_rate: float | Decimal,
    annual_emissions: float | Decimal | None = None,
    gita_credit_balance: float | Decimal | None = None,
) -> TaxImpact:
    """Forecast carbon tax liability at ``proposed_tax_rate`` RM per tonne.

    Missing emissions default to 1000 t and a missing credit balance to 0.
    Net liability never goes below zero; ``net + savings == gross`` holds
    exactly.
    """
    emissions = DEFAULT_ANNUAL_EMISSIONS if annual_emissions is None else _dec(annual_emissions)
    credit = Decimal("0") if gita_credit_balance is None else _dec(gita_credit_balance)

    gross = emissions * _dec(proposed_tax_rate)
    net = max(Decimal("0"), gross - credit)
    return TaxImpact(
        gross_liability=gross,
        net_liability_after_gita=net,
        savings_from_gita=gross - net,
    )


def simulate_investment(
    asset: GreenAsset,
    monthly_energy_usage_kwh: float | Decimal | None = None,
) -> InvestmentOutcome:
    """Estimate payback period and lifetime ROI for a green asset.

    Args:
        asset: Catalog entry with capex, offset share, maintenance, and lifetime.
        monthly_energy_usage_kwh: Current monthly usage; 5000 kWh when unknown.
            An explicit 0 is kept and yields the payback sentinel.

    Returns:
        Payback in years (2 dp, or 99 when the asset never pays back), annual
        and tax savings in RM, and lifetime ROI percent (1 dp).
    """
    monthly = (
        DEFAULT_MONTHLY_ENERGY_KWH
        if monthly_energy_usage_kwh is None
        else _dec(monthly_energy_usage_kwh)
    )
    capex = _dec(asset.capex_rm or 0)

    annual_energy_kwh = monthly * 12
    offset_kwh = annual_energy_kwh * _or_default(
        asset.annual_energy_offset_percent, DEFAULT_ENERGY_OFFSET_PERCENT
    )
    annual_savings = offset_kwh * ELECTRICITY_TARIFF_RM_PER_KWH - _dec(
        asset.annual_maintenance_rm or 0
    )

    tax_savings = capex * CORPORATE_TAX_RATE if asset.gita_eligible else Decimal("0")
    effective_cost = capex - tax_savings

    if annual_savings > 0:
        payback = (effective_cost / annual_savings).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
    else:
        payback = PAYBACK_SENTINEL_YEARS

    if effective_cost > 0:
        lifetime = _or_default(asset.lifetime_years, DEFAULT_LIFETIME_YEARS)
        roi = ((annual_savings * lifetime - effective_cost) / effective_cost) * 100
        lifetime_roi = roi.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    else:
        lifetime_roi = Decimal("0")

    return InvestmentOutcome(
        payback_period_years=payback,
        annual_savings_rm=annual_savings,
        tax_savings_rm=tax_savings,
        lifetime_roi=lifetime_roi,
    )


def benchmark_industry(
    total_emissions: float | Decimal | None,
    annual_revenue: float | Decimal | None,
    average_intensity: float | Decimal | None = None,
) -> Benchmark:
    """Compare emission intensity against the industry average.

    Intensity is ``total_emissions * 1000 / annual_revenue``. Revenue falls
    back to 1 when missing or zero; a missing or non-positive industry
    average falls back to 0.0002.
    """
    emissions = _dec(total_emissions or 0)
    revenue = _or_default(annual_revenue, Decimal("1"))
    average = (
        _dec(average_intensity)
        if average_intensity is not None and average_intensity > 0
        else DEFAULT_INDUSTRY_INTENSITY
    )

    user_intensity = (emissions * 1000) / revenue
    performance = BETTER if user_intensity < average else WORSE
    percent_diff = int(
        (abs(user_intensity - average) / average * 100).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    )
    return Benchmark(
        user_intensity=user_intensity,
        industry_average=average,
        performance=performance,
        percent_diff=percent_diff,
    )
