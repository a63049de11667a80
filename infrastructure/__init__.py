"""Infrastructure layer - adaptadores externos (HTTP, almacenamiento, geolocalización, logging)."""
