"""Pure mappings from each source's raw payloads to Work / Character records."""
