# ===============================================================================
# API THROTTLING CLASSES 🚦
# ===============================================================================

from rest_framework.throttling import ScopedRateThrottle


class OrderCreateThrottle(ScopedRateThrottle):
    """Throttling for checkout"""
    scope = 'order_create'


class PaymentInitiateThrottle(ScopedRateThrottle):
    """Throttling for STK push initiation"""
    scope = 'payment_initiate'


class WalletPayThrottle(ScopedRateThrottle):
    """Throttling for wallet payments"""
    scope = 'wallet_pay'


class MpesaCallbackThrottle(ScopedRateThrottle):
    """Throttling for the public M-Pesa callback"""
    scope = 'mpesa_callback'
