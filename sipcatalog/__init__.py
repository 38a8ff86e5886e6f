"""SIP catalog: faceted product search with a database fallback."""
