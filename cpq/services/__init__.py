"""Business logic: activity batching engine, bulk coordination, components."""
