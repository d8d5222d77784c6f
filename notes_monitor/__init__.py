"""Log-derived metrics extraction and deduplicated threshold alerting."""
