"""Core domain package for groupwatch.

Core contains group filtering, distribution-request handling, and the
message pipeline without any WhatsApp, Firebase, or file-specific code,
keeping the business logic portable.
"""
