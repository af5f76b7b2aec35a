"""
TallyHub Backend — Services Layer
===================================

What:  Business logic between routes (HTTP) and the database.

Service Inventory:
    - CounterService: atomic access counter (upsert-based increment/reset)
    - UserService:    user CRUD, uniqueness, pagination, statistics

Services are stateless; the AsyncSession is passed to every call and each
module exports a ready-to-use instance (counter_service, user_service).
"""
