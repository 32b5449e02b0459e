"""
Todo API package.

A FastAPI service storing todos in PostgreSQL through a psycopg2 connection
pool. The application factory lives in ``todo_api.main``.
"""
