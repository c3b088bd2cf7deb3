"""
Booking core services
"""
