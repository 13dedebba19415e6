"""
Configuration, logging, persistence and token helpers shared by the
rest of the application.
"""
