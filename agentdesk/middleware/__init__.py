"""
Middleware

- rate_limiter: SlowAPI request rate limiting
"""
