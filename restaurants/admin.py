from django.contrib import admin
from .models import Restaurant, MenuItem, Address


class MenuItemInline(admin.TabularInline):
    model = MenuItem
    extra = 0


@admin.register(Restaurant)
class RestaurantAdmin(admin.ModelAdmin):
    list_display = ('name', 'owner', 'city', 'rating', 'is_active', 'created_at')
    search_fields = ('name', 'owner__email', 'city')
    list_filter = ('is_active', 'city')
    readonly_fields = ('rating', 'created_at', 'updated_at')
    inlines = [MenuItemInline]


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    list_display = ('name', 'restaurant', 'price', 'category', 'is_available')
    search_fields = ('name', 'restaurant__name')
    list_filter = ('is_available', 'category')


@admin.register(Address)
class AddressAdmin(admin.ModelAdmin):
    list_display = ('user', 'label', 'city', 'is_default', 'created_at')
    search_fields = ('user__email', 'street', 'city')
