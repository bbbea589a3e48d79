"""Admin web application for the scraper scheduler."""
