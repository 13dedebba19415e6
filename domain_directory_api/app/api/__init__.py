"""
API package containing versioned routes and their shared dependencies.
"""
