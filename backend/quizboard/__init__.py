"""Application package for the Quizboard backend.

This package exposes the domain, scoring, analytics, service and
repository modules used by the FastAPI application. Individual modules
contain the concrete implementations and documentation.
"""
