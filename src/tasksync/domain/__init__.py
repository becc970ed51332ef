"""Domain layer — schemas, records, references, and pure sync rules.

This layer depends only on stdlib, pydantic, and ruamel.yaml.
It must never import from services, infrastructure, plugins, or config.
"""
