from .entity_mapper import EntityMapper, find_database
from .property_extraction import extract_completion, extract_due_date, extract_task, extract_title

__all__ = [
    "EntityMapper",
    "extract_completion",
    "extract_due_date",
    "extract_task",
    "extract_title",
    "find_database",
]
