"""
services/ - Business Logic Layer
================================
Connection rules between hosts and peripherals, user credential rules,
substitutions, the password expiration task and exports.
Services talk to repositories only; handlers talk to services only.
"""
