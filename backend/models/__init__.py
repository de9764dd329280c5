"""
Models package

- models.domain: storage-agnostic dataclasses owned by the entity store
- models.api: pydantic request/response and real-time message schemas
"""
