"""
Salon booking scheduler: availability, slots, conflicts and bookings
"""
