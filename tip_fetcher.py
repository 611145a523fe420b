"""Client side of the tip-of-the-day flow.

One POST per call, no retries and no caching. Whatever goes wrong comes
back as a readable string for the dashboard instead of an exception.
"""
import logging

import requests

log = logging.getLogger(__name__)

NO_ENTRIES_TIP = "Add at least one sales entry to get a personalized tip."


class TipFetcher:
    def __init__(self, endpoint, auth_session, http=None, timeout=None):
        self.endpoint = endpoint
        self.auth_session = auth_session
        self.http = http
        self.timeout = timeout

    def _post(self, http, entries):
        headers = {'Content-Type': 'application/json'}
        headers.update(self.auth_session.bearer_header())
        return http.post(
            self.endpoint,
            json={'entries': entries},
            headers=headers,
            timeout=self.timeout,
        )

    def fetch(self, entries):
        entries = list(entries)
        if not entries:
            return NO_ENTRIES_TIP

        log.debug("Requesting tip for %d entries from %s", len(entries), self.endpoint)
        try:
            if self.http is not None:
                resp = self._post(self.http, entries)
            else:
                # Owned session, closed after this request
                with requests.Session() as http:
                    resp = self._post(http, entries)
        except requests.RequestException as e:
            log.warning("Tip request failed: %s", e)
            return f"Unable to generate tip right now: {e}"

        raw = resp.text
        if not resp.ok:
            log.warning("Tip endpoint returned HTTP %s: %s", resp.status_code, raw)
            return f"Unable to generate tip right now (HTTP {resp.status_code}): {raw}"

        try:
            data = resp.json()
        except ValueError:
            data = None

        tip = data.get('tip') if isinstance(data, dict) else None
        if not tip:
            log.warning("No 'tip' field in tip response: %s", raw)
            return f"No tip found in response: {raw}"
        return tip
