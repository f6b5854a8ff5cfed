"""Pydantic schemas — request bodies, value objects and error shapes."""
