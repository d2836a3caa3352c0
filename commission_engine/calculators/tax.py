"""
Tax Computer

GST is added on top of the taxable commission, TDS is withheld from it.
All use Decimal for precision with ROUND_HALF_UP rounding.
"""

from decimal import ROUND_HALF_UP, Decimal

from ..errors import InvalidCommissionError
from ..models import TaxBreakdown


def quantize_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half up."""
    return value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


class TaxComputer:
    """Derives GST, TDS and net payable from a taxable commission."""

    GST_RATE = Decimal('18')
    TDS_RATE = Decimal('2')

    def __init__(self, gst_rate: Decimal | None = None, tds_rate: Decimal | None = None):
        self.gst_rate = Decimal(str(gst_rate)) if gst_rate is not None else self.GST_RATE
        self.tds_rate = Decimal(str(tds_rate)) if tds_rate is not None else self.TDS_RATE

    def apply(self, taxable: Decimal, tds_percentage: Decimal | None = None) -> TaxBreakdown:
        """
        Net Payable = Taxable + GST - TDS

        GST is always added and TDS always subtracted.
        """
        if taxable < 0:
            raise InvalidCommissionError(f"Taxable commission cannot be negative, got: {taxable}")

        tds_percentage = self.tds_rate if tds_percentage is None else Decimal(str(tds_percentage))
        taxable = quantize_money(taxable)
        gst = quantize_money(taxable * self.gst_rate / 100)
        tds = quantize_money(taxable * tds_percentage / 100)

        return TaxBreakdown(
            taxable=taxable,
            gst=gst,
            tds=tds,
            tds_percentage=tds_percentage,
            net_payable=taxable + gst - tds,
        )
