"""Read-only derived views: day agenda, month calendar indicators, task queries."""
