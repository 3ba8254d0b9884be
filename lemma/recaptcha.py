"""Bot check for mutating requests (Google reCAPTCHA ``siteverify``).

An empty secret disables the check entirely, which is what local development
and the test-suite use.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


class RecaptchaVerifier:
    def __init__(
        self,
        secret: str,
        verify_url: str = "https://www.google.com/recaptcha/api/siteverify",
        timeout: float = 10.0,
    ) -> None:
        self.secret = secret
        self.verify_url = verify_url
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.secret)

    def verify(self, code: str) -> bool:
        """Return ``True`` when the bot check passes (or is disabled).

        Transport failures and malformed responses count as a failed check;
        they are logged, never raised.
        """
        if not self.enabled:
            return True

        try:
            resp = httpx.post(
                self.verify_url,
                data={"secret": self.secret, "response": code or ""},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("recaptcha verification failed: %s", exc)
            return False

        if body.get("success") is True:
            return True
        logger.info("recaptcha error: %s", body.get("error-codes"))
        return False

