"""Front-end layer of the portal.

Everything here talks to the API over an injected HTTP client. Nothing uses
the Flask request context or the database session, so it can run in any host
that provides an ``HttpClient``.
"""
