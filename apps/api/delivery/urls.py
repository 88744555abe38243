from django.urls import path

from . import views

app_name = 'delivery'

urlpatterns = [
    # Public
    path('zones/', views.zone_list, name='zone_list'),
    path('calculate-fee/', views.calculate_fee, name='calculate_fee'),

    # Agent self-service
    path('agents/apply/', views.agent_apply, name='agent_apply'),
    path('agents/profile/', views.agent_profile, name='agent_profile'),
    path('agents/availability/', views.agent_availability, name='agent_availability'),
    path('agents/deliveries/', views.agent_deliveries, name='agent_deliveries'),
    path('orders/<uuid:order_id>/status/', views.delivery_status, name='delivery_status'),

    # Admin
    path('admin/agents/', views.admin_agent_list, name='admin_agent_list'),
    path('admin/agents/<uuid:agent_id>/status/', views.admin_agent_status, name='admin_agent_status'),
    path('admin/assign/', views.admin_assign, name='admin_assign'),
    path('admin/zones/', views.admin_zone_create, name='admin_zone_create'),
    path('admin/zones/<uuid:zone_id>/', views.admin_zone_update, name='admin_zone_update'),
]
