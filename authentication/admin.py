from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from .models import CustomUser


class CustomUserAdmin(UserAdmin):
    model = CustomUser

    list_display = ('email', 'role', 'full_name', 'is_staff', 'is_active')
    list_filter = ('role', 'is_staff', 'is_active', 'is_available')
    search_fields = ('email', 'full_name', 'phone_number')

    readonly_fields = ('uuid', 'last_login', 'created_at', 'updated_at')

    fieldsets = (
        (None, {'fields': ('uuid', 'email', 'password')}),
        ('Personal Info', {'fields': ('full_name', 'phone_number')}),
        ('Delivery', {'fields': ('vehicle_type', 'vehicle_number', 'is_available')}),
        ('Permissions', {'fields': ('role', 'is_active', 'is_staff', 'is_superuser')}),
        ('Important Dates', {'fields': ('last_login', 'created_at', 'updated_at')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'password1', 'password2', 'role', 'is_staff', 'is_superuser'),
        }),
    )

    ordering = ('email',)


admin.site.register(CustomUser, CustomUserAdmin)
