"""
Polling clients for the customer app and the kitchen dashboard.
"""

from snappy_serve.clients.api import ApiError, CafeApiClient
from snappy_serve.clients.customer import CustomerClient
from snappy_serve.clients.kitchen import KitchenClient
from snappy_serve.clients.notifications import BaseNotifier, LoggingNotifier, Notification
from snappy_serve.clients.polling import PollingSubscription, SubscriptionHub

__all__ = [
    "ApiError",
    "BaseNotifier",
    "CafeApiClient",
    "CustomerClient",
    "KitchenClient",
    "LoggingNotifier",
    "Notification",
    "PollingSubscription",
    "SubscriptionHub",
]
