"""
SaySo API
FastAPI application, routers and services.
"""
