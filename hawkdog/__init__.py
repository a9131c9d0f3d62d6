"""hawkdog - filesystem honeypot.

Plants a decoy credentials file, watches it for any access and sends
rate-limited alerts over Telegram and email.
"""

__version__ = "0.1.0"
