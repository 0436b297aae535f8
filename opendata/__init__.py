"""NYC Open Data access layer: identifiers, Socrata paging, staging tables and ORM models."""
