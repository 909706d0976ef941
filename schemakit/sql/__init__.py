"""SQL building blocks: identifiers, defaults, DDL rendering and screening."""
