"""
Audit models for Duka
Immutable trail of money-moving and administrative actions.
"""

import uuid
from typing import ClassVar

from django.db import models
from django.utils.translation import gettext_lazy as _


class AuditEvent(models.Model):
    """Immutable audit log entry."""

    ACTION_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        # Orders
        ('order_create', 'Order Create'),
        ('order_cancel', 'Order Cancel'),
        ('order_status_change', 'Order Status Change'),
        # Payments
        ('payment_initiate', 'Payment Initiate'),
        ('payment_success', 'Payment Success'),
        ('payment_failed', 'Payment Failed'),
        ('payment_refund', 'Payment Refund'),
        # Wallet
        ('admin_wallet_credit', 'Admin Wallet Credit'),
        # Delivery
        ('delivery_assign', 'Delivery Assign'),
        ('delivery_status_update', 'Delivery Status Update'),
        ('agent_application', 'Agent Application'),
        ('agent_status_change', 'Agent Status Change'),
        ('zone_create', 'Zone Create'),
        ('zone_update', 'Zone Update'),
        # Coupons
        ('coupon_create', 'Coupon Create'),
        ('coupon_update', 'Coupon Update'),
        ('coupon_delete', 'Coupon Delete'),
    )

    RESOURCE_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('order', 'Order'),
        ('payment', 'Payment'),
        ('wallet', 'Wallet'),
        ('delivery', 'Delivery'),
        ('delivery_agent', 'Delivery Agent'),
        ('delivery_zone', 'Delivery Zone'),
        ('coupon', 'Coupon'),
        ('system', 'System'),
    )

    SEVERITY_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('low', _('Low')),
        ('medium', _('Medium')),
        ('high', _('High')),
        ('critical', _('Critical')),
    )

    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('success', _('Success')),
        ('failed', _('Failed')),
        ('pending', _('Pending')),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # When and where
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    request_id = models.CharField(max_length=64, blank=True, db_index=True)

    # Who
    user = models.ForeignKey('users.User', on_delete=models.SET_NULL, null=True, blank=True)
    actor_type = models.CharField(max_length=20, default='user')  # user, system, gateway

    # What
    action = models.CharField(max_length=40, choices=ACTION_CHOICES, db_index=True)
    resource = models.CharField(max_length=20, choices=RESOURCE_CHOICES)
    resource_id = models.CharField(max_length=64, blank=True, db_index=True)
    details = models.JSONField(default=dict, blank=True)

    # Outcome
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default='low')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='success')
    error_message = models.TextField(blank=True)

    class Meta:
        db_table = 'audit_event'
        ordering: ClassVar[tuple[str, ...]] = ('-timestamp',)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['user', '-timestamp'], name='audit_user_ts_idx'),
            models.Index(fields=['resource', 'resource_id', '-timestamp'], name='audit_resource_ts_idx'),
            models.Index(fields=['action', '-timestamp'], name='audit_action_ts_idx'),
            models.Index(fields=['severity', 'status'], name='audit_severity_status_idx'),
        )

    def __str__(self) -> str:
        return f"{self.action} on {self.resource}:{self.resource_id} by {self.user or 'System'}"
