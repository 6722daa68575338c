"""Invoice business rules: rate strings and item tax arithmetic."""
