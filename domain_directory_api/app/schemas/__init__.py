"""
Pydantic schema definitions.

Models are separated from the SQLite rows they are built from so the
API representation (for instance the public domain snapshot) can omit
secrets such as the API key hash.
"""
