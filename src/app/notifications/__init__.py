"""Notification module -- persisted, fire-and-forget user notifications.

Provides NotificationModel, NotificationRepository for inbox reads, and
NotificationService, which the contract workflow calls without waiting on
or depending on the outcome.
"""
