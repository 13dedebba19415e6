"""Domain directory client.

This module is what a domain server uses to talk to the directory:

* :meth:`DomainDirectoryAPI.get_domain` : read the public record.
* :meth:`DomainDirectoryAPI.send_heartbeat` : report liveness, network
  settings and user counts.
* :meth:`DomainDirectoryAPI.update_meta` : push values from the domain
  settings page.
* :meth:`DomainDirectoryAPI.delete_domain` : remove a domain (admin
  token required).

Authentication uses either a bearer token (``token=``) or the domain's
API key (``api_key=``), which is sent inside the request body the way
domain servers have always done.  All methods return ``(data, error)``
tuples; HTTP and network failures never raise.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import requests


logger = logging.getLogger(__name__)

ApiError = Dict[str, Any]

# A 401 from the directory means the domain should redo its identity
# negotiation rather than give up.
RENEGOTIATE_STATUS = 401


class DomainDirectoryAPI:
    """Client for the ``/api/v1/domains/{domain_id}`` resource."""

    def __init__(
        self,
        *,
        base_url: str,
        domain_id: str,
        token: Optional[str] = None,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: int = 15,
    ) -> None:
        """Initialise the client.

        Args:
            base_url: Base URL of the directory, e.g. ``https://metaverse.example``.
            domain_id: Identifier of the domain this client acts on.
            token: Optional bearer token (account or domain scope).
            api_key: Optional domain API key, sent in update bodies.
            session: Optional requests session.  Created if not supplied.
            timeout: Per request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.domain_id = domain_id
        self.token = token
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def path(self) -> str:
        return f"/api/v1/domains/{self.domain_id}"

    # ------------------------------------------------------------------
    # Low level HTTP helpers
    # ------------------------------------------------------------------
    def _request(
        self, method: str, *, json_body: Any | None = None
    ) -> Tuple[Optional[Dict[str, Any]], Optional[ApiError]]:
        """Perform an HTTP request against the domain resource.

        Returns:
            A tuple ``(data, error)``.  On success ``data`` is the parsed
            JSON envelope.  On failure ``data`` is ``None`` and ``error``
            holds ``status_code`` and ``message``.
        """
        url = f"{self.base_url}{self.path}"
        headers: Dict[str, str] = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            logger.debug("Sending %s request to %s", method, url)
            response = self.session.request(
                method=method,
                url=url,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            if response.content:
                return response.json(), None
            return None, None
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            message = ""
            if exc.response is not None:
                try:
                    err_json = exc.response.json()
                    message = err_json.get("message") or err_json.get("detail") or str(err_json)
                except ValueError:
                    message = exc.response.text
            if not message:
                message = str(exc)
            if status == RENEGOTIATE_STATUS:
                logger.warning("Directory rejected domain %s: %s", self.domain_id, message)
            else:
                logger.error("Directory request failed (%s): %s", status, message)
            return None, {"status_code": status, "message": message}
        except requests.RequestException as exc:
            logger.error("Directory request failed: %s", exc)
            return None, {"status_code": None, "message": str(exc)}

    def _domain_body(self, values: Dict[str, Any]) -> Dict[str, Any]:
        body = dict(values)
        if self.api_key:
            body["api_key"] = self.api_key
        return {"domain": body}

    # ------------------------------------------------------------------
    # Domain operations
    # ------------------------------------------------------------------
    def get_domain(self) -> Tuple[Optional[Dict[str, Any]], Optional[ApiError]]:
        """Fetch the public record of the domain."""
        data, error = self._request("GET")
        if error:
            return None, error
        if isinstance(data, dict):
            payload = data.get("data") or {}
            return payload.get("domain") or data.get("domain"), None
        return None, None

    def send_heartbeat(
        self,
        num_users: int,
        num_anon_users: int = 0,
        **fields: Any,
    ) -> Tuple[bool, Optional[ApiError]]:
        """Report liveness and user counts, plus any flat domain fields.

        Example::

            api.send_heartbeat(3, 1, network_port=40102, version="2024.1")
        """
        values = dict(fields)
        values["heartbeat"] = {"num_users": num_users, "num_anon_users": num_anon_users}
        _, error = self._request("PUT", json_body=self._domain_body(values))
        return error is None, error

    def update_meta(self, **meta: Any) -> Tuple[bool, Optional[ApiError]]:
        """Send settings page values (``description``, ``managers`` ...)."""
        if not meta:
            return False, {"status_code": None, "message": "No meta fields given"}
        _, error = self._request("PUT", json_body=self._domain_body({"meta": meta}))
        return error is None, error

    def delete_domain(self) -> Tuple[bool, Optional[ApiError]]:
        """Delete the domain.  Requires an administrator token."""
        _, error = self._request("DELETE")
        return error is None, error
