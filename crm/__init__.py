"""
CRM Business Modules.

- backend/: API, services, repositories, database models, background tasks
"""
