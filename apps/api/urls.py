# ===============================================================================
# DUKA API MAIN URLS 🚀
# ===============================================================================
#
# Central API routing for all Duka domains.
#
# URL Structure:
#   /api/products/  → Public catalog
#   /api/cart/      → Shopping cart and coupon slot
#   /api/orders/    → Checkout, history, admin status changes
#   /api/payments/  → M-Pesa STK push/callback, refunds, history
#   /api/wallet/    → Balance, ledger, wallet checkout, admin credit
#   /api/delivery/  → Zones, agents, dispatch
#   /api/coupons/   → Code validation and admin management
#

from django.urls import include, path

app_name = 'api'

urlpatterns = [
    path('products/', include('apps.api.products.urls')),
    path('cart/', include('apps.api.cart.urls')),
    path('orders/', include('apps.api.orders.urls')),
    path('payments/', include('apps.api.payments.urls')),
    path('wallet/', include('apps.api.wallet.urls')),
    path('delivery/', include('apps.api.delivery.urls')),
    path('coupons/', include('apps.api.coupons.urls')),
]
