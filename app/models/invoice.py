from enum import Enum


class PaymentStatus(str, Enum):
    """Gateway-side state of the invoice payment"""
    PENDING = "pending"
    PAYMENT_LINK_GENERATED = "payment_link_generated"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


class InvestigationStatus(str, Enum):
    """Administrative review state, independent of payment status"""
    PENDING_REVIEW = "pending_review"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


# Review states in which an admin may still approve or reject
REVIEWABLE_STATUSES = (
    InvestigationStatus.PENDING_REVIEW.value,
    InvestigationStatus.UNDER_REVIEW.value,
)
