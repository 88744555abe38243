"""
Wallet API Serializers for Duka
"""

from rest_framework import serializers

from apps.common.utils import from_cents
from apps.wallet.models import Wallet, WalletTransaction

AMOUNT = {'max_digits': 12, 'decimal_places': 2}


class WalletTransactionSerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(read_only=True, **AMOUNT)
    balance_after = serializers.SerializerMethodField()

    class Meta:
        model = WalletTransaction
        fields = [
            'id', 'type', 'amount', 'description', 'reference', 'source',
            'status', 'metadata', 'balance_after', 'created_at',
        ]

    def get_balance_after(self, obj: WalletTransaction) -> str:
        return str(from_cents(obj.balance_after_cents))


class WalletSerializer(serializers.ModelSerializer):
    balance = serializers.DecimalField(read_only=True, **AMOUNT)
    formatted_balance = serializers.CharField(read_only=True)

    class Meta:
        model = Wallet
        fields = ['id', 'balance', 'formatted_balance', 'currency', 'is_active', 'last_transaction_at', 'created_at']


class AdminWalletSerializer(WalletSerializer):
    user = serializers.SerializerMethodField()

    class Meta(WalletSerializer.Meta):
        fields = [*WalletSerializer.Meta.fields, 'user']

    def get_user(self, obj: Wallet) -> dict:
        return {'id': str(obj.user_id), 'email': obj.user.email, 'name': obj.user.full_name, 'phone': obj.user.phone}

# ===============================================================================
# INPUT SERIALIZERS
# ===============================================================================

class WalletPayInputSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    amount = serializers.DecimalField(**AMOUNT)


class WalletCreditInputSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(**AMOUNT)
    description = serializers.CharField(max_length=255)
    reference = serializers.CharField(max_length=100)
