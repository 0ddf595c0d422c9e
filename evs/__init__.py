"""Election voting service: credential management and exactly-once vote admission."""

__version__ = '1.0.0'
