# Notification services module
from jobmatch.services.notification.fanout import Delivery, FanoutPool
from jobmatch.services.notification.recommendation_dispatcher import (
    RecommendationDispatcher,
)
from jobmatch.services.notification.transports import (
    EmailTransport,
    NoopEmailTransport,
    NoopPushTransport,
    PushTransport,
    RedisPushTransport,
    SmtpEmailTransport,
    build_email_transport,
    build_push_transport,
)
from jobmatch.services.notification.urgent_notifier import (
    UrgentProximityNotifier,
    passes_preferences,
)
