"""
models/ - Domain Layer
======================
Plain dataclasses for assets, connections, entities, users, user emails, substitutes and alerts.
No database or Telegram code lives here.
"""
