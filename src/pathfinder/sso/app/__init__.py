"""
Pathfinder SSO Application Layer

This package implements the web application layer using the aiohttp framework.

Key Components:
- cli.py: Entry point for running the application
- server.py: Web server configuration and middleware setup
- config.py: Configuration management using Pydantic settings
- session.py: Redis backed sessions and the session middleware
- handlers/: Request handlers for the SSO and internal endpoints

The application uses several middleware layers:
- Statsd middleware for metrics collection
- Sentry middleware for error reporting
- Session middleware for the session cookie
"""
