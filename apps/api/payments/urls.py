from django.urls import path

from . import views

app_name = 'payments'

urlpatterns = [
    path('mpesa/stk-push/', views.mpesa_stk_push, name='mpesa_stk_push'),
    path('mpesa/callback/', views.mpesa_callback, name='mpesa_callback'),
    path('status/<uuid:order_id>/', views.payment_status, name='payment_status'),
    path('admin/history/', views.payment_history, name='payment_history'),
    path('refund/<uuid:order_id>/', views.refund_order, name='refund_order'),
]
