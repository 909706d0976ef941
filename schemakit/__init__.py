"""SchemaKit schema and SQL execution engine."""
