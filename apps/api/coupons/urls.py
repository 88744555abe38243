from django.urls import path

from . import views

app_name = 'coupons'

urlpatterns = [
    path('', views.coupon_collection, name='coupon_collection'),
    path('validate/', views.validate_coupon, name='validate_coupon'),
    path('<uuid:coupon_id>/', views.coupon_detail, name='coupon_detail'),
]
