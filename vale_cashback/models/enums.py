# vale_cashback/models/enums.py
import enum


class UserType(enum.Enum):
    client = "client"
    merchant = "merchant"
    admin = "admin"


class UserStatus(enum.Enum):
    active = "active"
    inactive = "inactive"
    blocked = "blocked"


class TransactionStatus(enum.Enum):
    completed = "completed"
    pending = "pending"
    cancelled = "cancelled"
    refunded = "refunded"


class PaymentMethod(enum.Enum):
    cash = "cash"
    credit_card = "credit_card"
    debit_card = "debit_card"
    pix = "pix"
    wallet = "wallet"


class TransactionSource(enum.Enum):
    manual = "manual"
    qrcode = "qrcode"


class ItemType(enum.Enum):
    platform_fee = "platform_fee"
    client_cashback = "client_cashback"
    referral_bonus = "referral_bonus"
    merchant_net = "merchant_net"


class TransferStatus(enum.Enum):
    completed = "completed"
    failed = "failed"


class ReferralStatus(enum.Enum):
    pending = "pending"
    paid = "paid"


class QRCodeType(enum.Enum):
    payment = "payment"
    login = "login"


class QRCodeStatus(enum.Enum):
    active = "active"
    used = "used"
    expired = "expired"


class WithdrawalStatus(enum.Enum):
    pending = "pending"
    completed = "completed"
    rejected = "rejected"
    cancelled = "cancelled"


class NotificationType(enum.Enum):
    transaction = "transaction"
    cashback = "cashback"
    transfer = "transfer"
    referral = "referral"
    withdrawal = "withdrawal"
    system = "system"
