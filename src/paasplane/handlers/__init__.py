"""Handler modules for the paasplane operator."""
