"""
Bookshelf API — Routes Package
===============================

What:  HTTP route handlers (the handler/controller layer).

Route Inventory:
    - books.py:   /api/v1/books, /api/v1/books/{id}
    - users.py:   /api/v1/users, /api/v1/users/me, /api/v1/auth/token
    - health.py:  /health

Design Principle:
    Routes are THIN. They handle HTTP concerns only:
    - Extract data from the request (path, query, headers, body)
    - Call the appropriate service
    - Shape the response (status code, Location, pagination headers)

    Errors are raised by services and rendered by the global handlers in
    main.py; routes never catch them.

Conventions:
    - Plural resource names, versioned under /api/v1
    - POST → 201 + Location; DELETE → 204 with no body
    - Lists are always paginated and wrapped as {data, pagination}
"""
