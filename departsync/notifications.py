import logging

from .providers import NotificationSink


class LoggingNotificationSink(NotificationSink):
    """Writes notifications to the log and keeps them for inspection."""

    def __init__(self):
        self.delivered = []

    def deliver(self, title, body, scheduled_at):
        self.delivered.append((title, body, scheduled_at))
        logging.info(f"Notification for {scheduled_at.isoformat()}: {title} - {body}")

    def withdraw(self, title, scheduled_at):
        self.delivered = [d for d in self.delivered if (d[0], d[2]) != (title, scheduled_at)]
        logging.info(f"Withdrew notification for {scheduled_at.isoformat()}: {title}")
