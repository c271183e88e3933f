"""Index maintenance: reconciliation and statistics."""
