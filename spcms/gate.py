from __future__ import annotations

import hmac
from typing import Iterable

from .messaging import digits_only


def _phone_key(phone: str) -> str:
    # Compare on the last ten digits so "+91 98765 43210" matches "9876543210".
    digits = digits_only(phone)
    return digits[-10:] if len(digits) > 10 else digits


class AccessGate:
    """Shared-passcode gate in front of every data-changing action.

    With no passcode configured the gate starts open. ``allowed_phones`` is
    the static allow-list; an empty list accepts any phone.
    """

    def __init__(self, allowed_phones: Iterable[str] = (), passcode: str = "", payment_pin: str = ""):
        self.allowed_phones = {_phone_key(p) for p in allowed_phones if _phone_key(p)}
        self._passcode = passcode
        self._payment_pin = payment_pin
        self._authorized = not passcode

    @property
    def authorized(self) -> bool:
        return self._authorized

    def phone_allowed(self, phone: str) -> bool:
        if not self.allowed_phones:
            return True
        return _phone_key(phone) in self.allowed_phones

    def unlock(self, phone: str, passcode: str) -> bool:
        if not self.phone_allowed(phone):
            return False
        if self._passcode and not hmac.compare_digest(passcode.encode(), self._passcode.encode()):
            return False
        self._authorized = True
        return True

    def lock(self) -> None:
        self._authorized = False

    def verify_pin(self, pin: str) -> bool:
        if not self._payment_pin:
            return True
        return hmac.compare_digest(pin.encode(), self._payment_pin.encode())
