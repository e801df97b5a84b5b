# Routes package init
"""
TourDesk Backend: API Routes Package
=======================================

Route Inventory:
    - tours.py:   PATCH /api/v1/tours/{id}   (update tour, replace images)
    - health.py:  GET   /health              (service health check)

Design Principle:
    Routes are THIN: they extract data from the request, call a service, and
    shape the response. Business logic belongs in services.
"""
