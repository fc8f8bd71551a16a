from .contract import Contract  # noqa: F401
from .payment import Payment, PaymentStatus, PaymentType  # noqa: F401
from .wallet import FreelancerWallet  # noqa: F401
from .wallet_txn import WalletTxn  # noqa: F401
from .payout import PayoutRequest, PayoutStatus  # noqa: F401
from .webhook_event import WebhookAuditEntry, RejectedWebhook  # noqa: F401
from .notification import Notification  # noqa: F401
