"""
TallyHub Backend — API Routes Package
=======================================

Route Inventory:
    - access.py:  /api/access/{increment,count,statistics,health,reset}
    - users.py:   /api/users CRUD, /statistics, /search/email, /{id}/exists
    - health.py:  /health, /health/detailed, /info, /metrics
    - root.py:    /api (API root), / (redirect to /info)

Design Principle:
    Routes are THIN: extract input, call a service, wrap the result in the
    response envelope. Business rules live in services.
"""
