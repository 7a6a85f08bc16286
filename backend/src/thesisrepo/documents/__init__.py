"""Thesis documents: upload staging, retrieval and the document resolver."""
