"""Credential and security-session store.

Holds the bearer token, refresh credential, anti-bot cookies and sensor blob.
Every update swaps in a new frozen ``Session`` so a request that reads the
store mid-update sees either the old or the new credentials, never a mix.
"""

from __future__ import annotations

import logging

from stockwatch.models import SensorSummary, Session, utcnow

logger = logging.getLogger(__name__)


def normalize_bearer(token: str) -> str:
    token = token.strip()
    return token if token.startswith("Bearer ") else f"Bearer {token}"


def summarize_sensor(sensor_data: str) -> SensorSummary:
    """Split a sensor blob on its delimiters for display.

    Format: ``version,type,fp1,fp2$payload$c1,c2,c3$$$suffix``. The blob is
    opaque to everything else in stockwatch.
    """
    head, _, suffix = sensor_data.partition("$$$")
    parts = head.split("$")
    header = parts[0].split(",")
    counters: list[int] = []
    if len(parts) > 2 and parts[2]:
        for c in parts[2].split(","):
            try:
                counters.append(int(c))
            except ValueError:
                break
    return SensorSummary(
        version=header[0] or None,
        type=header[1] if len(header) > 1 else None,
        payload_length=len(parts[1]) if len(parts) > 1 else 0,
        counters=counters,
        suffix_length=len(suffix),
        total_length=len(sensor_data),
    )


class SessionStore:
    """Owns the current ``Session``. Pass by reference, never copy."""

    def __init__(
        self, access_token: str | None = None, refresh_token: str | None = None
    ) -> None:
        self._session = Session(
            access_token=normalize_bearer(access_token) if access_token else None,
            refresh_token=refresh_token or None,
        )

    @property
    def current(self) -> Session:
        return self._session

    def _replace(self, **changes) -> Session:
        self._session = self._session.model_copy(
            update={**changes, "last_updated_at": utcnow()}
        )
        return self._session

    def update_credentials(
        self, access_token: str | None = None, refresh_token: str | None = None
    ) -> Session:
        """Replace the access token and/or refresh credential."""
        changes: dict = {}
        if access_token:
            changes["access_token"] = normalize_bearer(access_token)
            logger.info("Access token updated")
        if refresh_token:
            changes["refresh_token"] = refresh_token
            logger.info("Refresh token updated")
        return self._replace(**changes)

    def update_security(
        self, cookies: dict[str, str] | None = None, sensor_data: str | None = None
    ) -> Session:
        """Replace the anti-bot cookie set and/or sensor blob."""
        changes: dict = {}
        if cookies is not None:
            changes["cookies"] = {k: v for k, v in cookies.items() if v}
        if sensor_data is not None:
            changes["sensor_data"] = sensor_data or None
        session = self._replace(**changes)
        logger.info(
            "Security session updated (%d cookies, sensor: %s)",
            len(session.cookies),
            "yes" if session.sensor_data else "no",
        )
        return session

    def clear_security(self) -> Session:
        logger.info("Security session cleared")
        return self._replace(cookies={}, sensor_data=None)
