"""
Catalog API Serializers for Duka
Read-only product views backing the cart.
"""

from rest_framework import serializers

from apps.products.models import Category, Product


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'slug']


class ProductListSerializer(serializers.ModelSerializer):
    """Slim product info for catalog listing"""

    price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    category = CategorySerializer(read_only=True)
    in_stock = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'slug', 'name', 'price', 'image_url', 'category', 'in_stock']

    def get_in_stock(self, obj: Product) -> bool:
        return obj.has_stock(1)


class ProductDetailSerializer(ProductListSerializer):
    """Full product info for detail view"""

    class Meta(ProductListSerializer.Meta):
        fields = [*ProductListSerializer.Meta.fields, 'description', 'variants', 'quantity', 'track_quantity']
