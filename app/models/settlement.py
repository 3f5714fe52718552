from enum import Enum


class TaxPaymentStatus(str, Enum):
    PENDING = "pending"  # Collected from the bank, not yet settled to government
    SETTLED = "settled"
