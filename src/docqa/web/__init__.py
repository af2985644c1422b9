"""HTTP adapter exposing the knowledge base."""
