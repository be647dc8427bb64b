"""
Service layer.

Each entity service declares its collection, unique fields, reference
fields and export columns; the shared pipeline (filter builder,
cross-reference resolver, paginator, duplicate-key guard and export
encoders) lives in the modules next to it.
"""
