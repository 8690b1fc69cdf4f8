"""Shared FastAPI dependencies for collaborators held on ``app.state``."""

from __future__ import annotations

from fastapi import Request

from shiftcal.config import Settings
from shiftcal.email.service import EmailService
from shiftcal.google.client import GoogleCalendarClient


def get_app_settings(request: Request) -> Settings:
    """The settings the app was built with, which may differ from the environment."""
    return request.app.state.settings


def get_email_service(request: Request) -> EmailService:
    """Yield the app's email service."""
    return request.app.state.email_service


def get_google_client(request: Request) -> GoogleCalendarClient:
    """Yield the app's Google Calendar client."""
    return request.app.state.google_client
