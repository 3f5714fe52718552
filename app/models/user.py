from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    BANK = "bank"
    GOVERNMENT = "government"
    POS_AGENT = "pos_agent"
