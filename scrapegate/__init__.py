"""ScrapeGate — batch URL vetting and page-text extraction service."""
