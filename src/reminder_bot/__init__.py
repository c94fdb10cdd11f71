"""Chat reminder bot: schedule "dd.mm.yyyy hh:mm text" reminders and deliver them on time."""

__version__ = "0.1.0"
