"""TodoHub Tasks — store, filters, aggregation, validation shapes."""
