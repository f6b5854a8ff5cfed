"""CPQ activity service — batched, bulk-aware activity logging."""
