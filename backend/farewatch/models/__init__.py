from farewatch.models.price_sample import PriceSample
from farewatch.models.push_token import PushToken
from farewatch.models.reservation import Reservation
from farewatch.models.user_notification import UserNotification
from farewatch.models.watch import Watch

__all__ = [
    "PriceSample",
    "PushToken",
    "Reservation",
    "UserNotification",
    "Watch",
]
