from artisan_market.models.order import (
    Address,
    CartLine,
    Order,
    OrderItem,
    OrderStatsEntry,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    StatusHistoryEntry,
)
from artisan_market.models.approval import (
    ApprovalDecision,
    ApprovalStatus,
    Artisan,
    BlogPost,
    EntityKind,
    PendingChanges,
    Product,
)
from artisan_market.models.comment import Comment, ModerationStatus
