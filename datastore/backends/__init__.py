"""Datastore backends.

Available backends:
- HTTPDataStore: read-only HTTP(S) endpoints
- S3DataStore: AWS S3 and S3-compatible storage
- LocalDataStore: Local filesystem

Backends are imported lazily by the registry in ``datastore.base`` so that
boto3 is only loaded when an S3 store is built.
"""
