from enum import Enum


class TaxReportStatus(str, Enum):
    """Lifecycle of a bank's monthly POS tax filing"""
    PENDING = "pending"  # Submitted or resubmitted, awaiting admin review
    APPROVED = "approved"  # Final; settlement has been triggered
    REJECTED = "rejected"  # Bank must revise the same report
