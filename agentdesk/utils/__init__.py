"""
Utility modules

- retry: tenacity retry policies
- error_handlers: FastAPI exception handlers
- sanitize: redaction for logs and stored errors
"""
