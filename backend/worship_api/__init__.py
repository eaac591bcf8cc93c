"""Worship tracker core: accounts, sessions, admin 2FA, audit log and admin notifications"""

__version__ = "0.1.0"
