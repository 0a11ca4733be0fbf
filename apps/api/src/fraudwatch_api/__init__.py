"""FraudWatch API service."""
