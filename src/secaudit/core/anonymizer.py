"""Deterministic, one-way anonymisation of actor identifiers.

IP addresses keep their network prefix (useful for spotting a source
subnet) and lose the host part. User ids are replaced with a truncated,
salted SHA-256 digest: the same raw id always maps to the same token, and
the token cannot be turned back into the id.
"""

import hashlib
import ipaddress
from typing import Optional

ANONYMIZED_IP = "anonymized"
USER_HASH_LENGTH = 16


class Anonymizer:
    """Masks IP addresses and hashes user ids.

    Args:
        salt: Mixed into user-id digests so tokens differ per deployment.
    """

    def __init__(self, salt: str = ""):
        self._salt = salt.encode("utf-8")

    def anonymize_ip(self, ip: Optional[str]) -> Optional[str]:
        """Mask the host part of an address.

        ``203.0.113.42`` -> ``203.0.113.xxx``; IPv6 keeps the first four
        hextets. Anything unparseable becomes ``"anonymized"``.
        """
        if not ip:
            return None
        try:
            addr = ipaddress.ip_address(ip.strip())
        except ValueError:
            return ANONYMIZED_IP

        if addr.version == 4:
            octets = str(addr).split(".")
            return f"{octets[0]}.{octets[1]}.{octets[2]}.xxx"

        hextets = addr.exploded.split(":")
        return ":".join(hextets[:4]) + "::xxxx"

    def hash_user_id(self, user_id: Optional[str]) -> Optional[str]:
        if not user_id:
            return None
        hasher = hashlib.sha256()
        hasher.update(self._salt)
        hasher.update(user_id.encode("utf-8"))
        return hasher.hexdigest()[:USER_HASH_LENGTH]
