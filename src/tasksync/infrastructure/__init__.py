"""Infrastructure layer — document store, header index, filesystem, templates.

This layer depends on stdlib, the domain layer, and third-party libs
(SQLAlchemy, Jinja2). It must never import from services or plugins.
"""
