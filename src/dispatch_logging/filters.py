"""PII masking for log output."""

import logging
import re


class PIIFilter(logging.Filter):
    """Masks e-mail addresses and Philippine mobile numbers.

    Masking runs on the rendered message, so values passed as ``%s``
    arguments are covered as well as literal text.
    """

    EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+")
    # 09XX XXX XXXX, +639XX..., 639XX..., with optional - . or space groups
    PH_MOBILE_PATTERN = re.compile(r"(?<!\d)(?:\+?63|0)9\d{2}[-.\s]?\d{3}[-.\s]?\d{4}(?!\d)")

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Broken format args are reported by the handler
            return True

        masked = self.EMAIL_PATTERN.sub("[EMAIL]", message)
        masked = self.PH_MOBILE_PATTERN.sub("[PHONE]", masked)
        if masked != message:
            record.msg = masked
            record.args = None
        return True
