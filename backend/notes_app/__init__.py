"""Application package for the notes backend.

This package exposes the service, repository and model modules used by
the FastAPI application: email-OTP signup/signin, bearer-token sessions
and per-user notes. Individual modules contain the concrete
implementations and documentation.
"""
