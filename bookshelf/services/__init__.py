"""
Bookshelf API — Services Package
=================================

What:  Business logic, independent of HTTP.
Why:   Routes stay thin; rules are testable with mocked repositories.

Service Inventory:
    - auth_service.py:        password hashing (passlib/argon2), JWT issue/verify (PyJWT)
    - user_service.py:        registration, login, profile
    - book_service.py:        book CRUD with ownership and uniqueness rules
    - idempotency_service.py: Idempotency-Key replay for POST
    - pagination.py:          offset/metadata arithmetic shared by list services

Services receive repositories in their constructor (see bookshelf.dependencies),
so each request's services share that request's database session.
"""
