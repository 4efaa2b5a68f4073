"""Shared infrastructure: ORM entities, schemas, repositories, LLM access."""
