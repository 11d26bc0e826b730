"""LogVault: multi-tenant log ingestion, classification and retention."""
