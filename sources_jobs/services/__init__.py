"""Collaborators used by jobs: events, provisioning backend, metadata, deletion."""
