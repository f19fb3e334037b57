"""Withholding and ISS arithmetic for service invoices.

Amounts keep full Decimal precision; round with ``to_cents`` only when a
value leaves the program (API payload, screen).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from portal.models.invoice import WithholdingFlags

# Fraction of the service value withheld per federal tax
WITHHOLDING_RATES: dict[str, Decimal] = {
    "ir": Decimal("0.015"),
    "pis": Decimal("0.0065"),
    "cofins": Decimal("0.03"),
    "csll": Decimal("0.01"),
    "inss": Decimal("0.11"),
}

_ZERO = Decimal("0")
_CENT = Decimal("0.01")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class TaxBreakdown:
    iss_amount: Decimal
    ir_amount: Decimal
    pis_amount: Decimal
    cofins_amount: Decimal
    csll_amount: Decimal
    inss_amount: Decimal
    total_withheld: Decimal
    net_amount: Decimal

    def amount_for(self, name: str) -> Decimal:
        return getattr(self, f"{name}_amount")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert user/config input to Decimal. Floats go through ``str`` to avoid binary noise."""
    if isinstance(value, Decimal):
        d = value
    else:
        try:
            d = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Valor numerico invalido: '{value}'") from None
    if not d.is_finite():
        raise ValueError(f"Valor numerico invalido: '{value}'")
    return d


def to_cents(value: Decimal) -> Decimal:
    """Round a monetary amount to 2 places, half up."""
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def compute_taxes(
    service_value: Decimal | int | float | str,
    iss_rate: Decimal | int | float | str,
    flags: WithholdingFlags,
) -> TaxBreakdown:
    """Compute ISS, federal withholdings and the net amount for a service value.

    Every amount is always present: a withholding whose flag is off is
    exactly zero. ISS is always computed from *iss_rate* but is only
    deducted from the net amount when the ISS flag is set.
    """
    value = to_decimal(service_value)
    rate = to_decimal(iss_rate)
    if value < 0:
        raise ValueError(f"Valor do servico nao pode ser negativo: '{service_value}'")
    if rate < 0 or rate > _HUNDRED:
        raise ValueError("Aliquota ISS deve estar entre 0 e 100")

    iss_amount = value * rate / _HUNDRED
    withheld = {
        name: value * pct if getattr(flags, name) else _ZERO
        for name, pct in WITHHOLDING_RATES.items()
    }
    total_withheld = sum(withheld.values(), _ZERO)
    net_amount = value - total_withheld - (iss_amount if flags.iss else _ZERO)

    return TaxBreakdown(
        iss_amount=iss_amount,
        ir_amount=withheld["ir"],
        pis_amount=withheld["pis"],
        cofins_amount=withheld["cofins"],
        csll_amount=withheld["csll"],
        inss_amount=withheld["inss"],
        total_withheld=total_withheld,
        net_amount=net_amount,
    )


def rate_percent(name: str) -> Decimal:
    """Return the withholding rate of *name* as a percentage (e.g. 1.5 for IR)."""
    return (WITHHOLDING_RATES[name] * _HUNDRED).normalize()
