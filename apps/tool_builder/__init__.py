"""Tool file generator (OpenAPI -> tools.json)."""
