from django.urls import path

from . import views

app_name = 'orders'

urlpatterns = [
    path('', views.order_collection, name='order_collection'),
    path('my/', views.my_orders, name='my_orders'),
    path('<uuid:order_id>/', views.order_detail, name='order_detail'),
    path('<uuid:order_id>/cancel/', views.cancel_order, name='cancel_order'),
    path('<uuid:order_id>/status/', views.update_order_status, name='update_order_status'),
]
