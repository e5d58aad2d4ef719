from artisan_market.lifecycle.orders import (
    advance_status,
    can_be_cancelled,
    can_be_returned,
    cancel_order,
    find_orders_by_user,
    get_order_stats,
    place_order,
    record_payment_event,
    update_status,
)
from artisan_market.lifecycle.approvals import (
    clear_pending_changes,
    record_pending_change,
    set_approval,
    submit_for_approval,
    update_artisan_profile,
)
