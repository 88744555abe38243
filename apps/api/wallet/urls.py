from django.urls import path

from . import views

app_name = 'wallet'

urlpatterns = [
    path('', views.wallet_detail, name='wallet_detail'),
    path('transactions/', views.wallet_transactions, name='wallet_transactions'),
    path('pay/', views.wallet_pay, name='wallet_pay'),
    path('credit/', views.wallet_credit, name='wallet_credit'),
    path('admin/stats/', views.wallet_stats, name='wallet_stats'),
    path('admin/all/', views.wallet_list, name='wallet_list'),
]
