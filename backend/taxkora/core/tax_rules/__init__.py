from taxkora.core.tax_rules.reliefs import compute_reliefs
from taxkora.core.tax_rules.pit import PITCalculator, compute_pit
from taxkora.core.tax_rules.cit import CITCalculator, compute_cit
from taxkora.core.tax_rules.vat import VATCalculator, compute_vat_for_period
from taxkora.core.tax_rules.wht import WHTCalculator, compute_wht
from taxkora.core.tax_rules.capital_allowance import compute_capital_allowance, compute_capital_allowances

__all__ = [
    "compute_reliefs",
    "PITCalculator",
    "compute_pit",
    "CITCalculator",
    "compute_cit",
    "VATCalculator",
    "compute_vat_for_period",
    "WHTCalculator",
    "compute_wht",
    "compute_capital_allowance",
    "compute_capital_allowances",
]
