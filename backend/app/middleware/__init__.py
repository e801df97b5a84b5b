# Middleware package init
"""
TourDesk Backend: Middleware Package
=======================================

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID first: every later log line of the request can read it
    2. Logging: measures duration of everything downstream
"""
