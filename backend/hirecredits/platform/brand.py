"""Centralized brand configuration for user-facing copy."""

BRAND_NAME = "HireCredits"
BRAND_APP_DESCRIPTION = "Credit-based assessment invitations for recruiting teams"
BRAND_SERVICE_NAME = "hirecredits-api"
