"""
API routers
"""
