"""
db/ - Database Layer
====================
PostgreSQL connection pool and schema initialization for assets, connections,
entities, users, substitutes and alerts.
This layer is the lowest in the architecture and has no dependencies on other layers.
"""
