"""
Package: config
Description: Environment-driven application settings.
"""
