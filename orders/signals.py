import logging
from decimal import Decimal

from django.db.models import Avg
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from .models import Review

logger = logging.getLogger(__name__)


@receiver([post_save, post_delete], sender=Review)
def refresh_restaurant_rating(sender, instance, **kwargs):
    """Keep Restaurant.rating equal to the average of its published restaurant ratings."""
    restaurant = instance.restaurant
    if restaurant is None:
        return

    average = Review.objects.filter(
        restaurant=restaurant,
        is_published=True,
        restaurant_rating__isnull=False,
    ).aggregate(avg=Avg('restaurant_rating'))['avg']

    rating = Decimal(str(round(average, 2))) if average is not None else Decimal('0.00')
    if rating != restaurant.rating:
        restaurant.rating = rating
        restaurant.save(update_fields=['rating', 'updated_at'])
        logger.info(f"Restaurant {restaurant.pk} rating refreshed to {rating}")
