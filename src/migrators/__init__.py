"""
Uniform API access and the upload/assign executor.

This subpackage wraps the Uniform REST API behind endpoint discovery (each
call probes several URL shapes), automatic retries and optional rate
limiting, and applies reviewed mappings by resolving or uploading assets
and writing them into entries.
"""
