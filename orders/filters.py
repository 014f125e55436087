import django_filters

from .models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Order.Status.choices)
    restaurant = django_filters.NumberFilter(field_name='restaurant_id')
    customer = django_filters.UUIDFilter(field_name='customer__uuid')

    class Meta:
        model = Order
        fields = ['status', 'restaurant', 'customer']
