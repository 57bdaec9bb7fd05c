from storefront.models.user import User
from storefront.models.order import Order, OrderLine, ORDER_STATUSES
from storefront.models.settlement import Settlement, SETTLEMENT_STATES, transfer_group_for
