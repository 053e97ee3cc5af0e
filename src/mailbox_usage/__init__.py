"""Mailbox storage usage: per-folder size reporting over Microsoft Graph."""

__version__ = "0.1.0"
