"""Live subscriptions: one store listener per query, fanned out to handles."""

from .manager import LiveQuery, Subscription, SubscriptionManager, SubscriptionScope  # noqa: F401
