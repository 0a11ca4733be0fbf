"""Alert and protection-settings API."""
