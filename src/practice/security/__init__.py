"""Request hardening: authentication, CSRF defense, rate limiting and input sanitization."""
