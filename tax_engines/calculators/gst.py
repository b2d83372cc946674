"""
Module: tax_engines.calculators.gst
Responsibility:
    Goods and Services Tax for one return: output GST on standard-rated
    supplies and reverse-charged imports, less input GST.

Invariants enforced:
    - Exports (zero-rated) carry GST at 0%; exempt supplies carry none.
    - ``net_liability = output_gst - input_gst`` is kept signed.  A negative
      value is a refund position and is never clamped to zero.

Failure modes:
    - InvalidAmountError for any negative supply or input amount.
"""

from __future__ import annotations

from tax_kernel.domain.facts import GstFacts
from tax_kernel.domain.rates import RateEntry
from tax_kernel.domain.values import ZERO, TaxType, quantize_money, require_non_negative
from tax_kernel.logging_config import get_logger
from tax_engines.calculators._common import check_entry, percent, require_facts
from tax_engines.results import CalculationLine, TaxCalculationResult
from tax_engines.tracer import traced_engine

logger = get_logger("engines.gst")


@traced_engine("gst", "1.0", fingerprint_fields=("facts", "entry"))
def calculate_gst(*, facts: GstFacts, entry: RateEntry) -> TaxCalculationResult:
    require_facts(facts, GstFacts, "gst")
    check_entry(entry, TaxType.GST, facts.category.value)

    taxable = require_non_negative(facts.taxable_supplies, "taxable_supplies")
    input_gst = require_non_negative(facts.input_gst, "input_gst")
    zero_rated = require_non_negative(facts.zero_rated_supplies, "zero_rated_supplies")
    exempt = require_non_negative(facts.exempt_supplies, "exempt_supplies")
    reverse_base = require_non_negative(facts.reverse_charge_base, "reverse_charge_base")

    rate = entry.rate
    standard = taxable * rate
    reverse = reverse_base * rate
    output_gst = quantize_money(standard + reverse)
    credits = quantize_money(input_gst)
    net = output_gst - credits

    lines = [CalculationLine(f"Standard-rated supplies @ {percent(rate)}", taxable, rate, standard)]
    if zero_rated:
        lines.append(CalculationLine("Zero-rated supplies (exports) @ 0%", zero_rated, ZERO, ZERO))
    if exempt:
        lines.append(CalculationLine("Exempt supplies", exempt, ZERO, ZERO))
    if reverse_base:
        lines.append(
            CalculationLine(f"Reverse charge on imports @ {percent(rate)}", reverse_base, rate, reverse)
        )
    lines.append(CalculationLine("Input GST credit", input_gst, ZERO, -input_gst))

    notes = ("refund position: input GST exceeds output GST",) if net < ZERO else ()

    logger.info(
        "gst_calculated",
        extra={
            "category": entry.category,
            "tax_year": entry.tax_year,
            "output_gst": str(output_gst),
            "input_gst": str(credits),
            "net_liability": str(net),
            "refund_position": net < ZERO,
        },
    )

    return TaxCalculationResult(
        tax_type=TaxType.GST,
        tax_year=entry.tax_year,
        category=entry.category,
        gross_liability=output_gst,
        credits=credits,
        net_liability=net,
        rate_versions=(entry.version,),
        lines=tuple(lines),
        notes=notes,
    )
