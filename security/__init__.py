"""
security/ - Access control and credential helpers.
"""
