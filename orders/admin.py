from django.contrib import admin

from .models import Order, OrderItem, Review, OrderAuditLog


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('menu_item', 'name', 'quantity', 'price')


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('order_number', 'batch_number', 'customer', 'restaurant', 'status', 'total_amount', 'payment_status', 'created_at')
    search_fields = ('order_number', 'batch_number', 'customer__email', 'restaurant__name')
    list_filter = ('status', 'payment_method', 'payment_status', 'created_at')
    readonly_fields = ('order_id', 'order_number', 'batch_number', 'order_timeline', 'created_at', 'updated_at')
    inlines = [OrderItemInline]


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ('id', 'batch_number', 'customer', 'restaurant_rating', 'delivery_rating', 'is_published', 'is_flagged', 'created_at')
    search_fields = ('batch_number', 'order_number', 'customer__email')
    list_filter = ('is_published', 'is_flagged', 'created_at')
    readonly_fields = ('customer', 'order', 'batch_number', 'order_number', 'moderated_by', 'moderated_at', 'created_at')


@admin.register(OrderAuditLog)
class OrderAuditLogAdmin(admin.ModelAdmin):
    list_display = ('id', 'order', 'from_status', 'to_status', 'actor', 'created_at')
    list_filter = ('to_status', 'created_at')
    search_fields = ('order__order_number', 'order__batch_number', 'message')
    readonly_fields = ('created_at',)

    def has_add_permission(self, request):
        """Audit rows are written by the order workflow only."""
        return False
