"""datastore-foundry test suite.

- test_http_datastore.py: HTTP backend against a local http.server
- test_http_datastore_config.py: HTTP construction and request shaping (fake session)
- test_storage_s3.py: S3 backend with moto
- test_storage_local.py: filesystem backend
- test_datastore_registry.py: backend registry and factory
- test_config.py / test_durations.py: configuration parsing and loading
- test_cancellation.py: cancellation tokens and streams
- test_error_codes.py: error taxonomy
"""
