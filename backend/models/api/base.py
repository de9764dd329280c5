"""
Shared pydantic base for API payloads

Clients speak camelCase JSON (userId, currentAccuracy, ...); Python code
uses snake_case attribute names.
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising to camelCase"""

    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
        "alias_generator": to_camel,
        "protected_namespaces": (),
    }
