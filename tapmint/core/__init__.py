"""
Core utilities — domain exceptions shared by the relay handlers and the API server.
"""
