"""
Tests for IP masking and user-id hashing.
"""

import hashlib

from secaudit.core.anonymizer import ANONYMIZED_IP, Anonymizer


class TestAnonymizeIP:

    def test_ipv4_masks_last_octet(self):
        assert Anonymizer().anonymize_ip("203.0.113.42") == "203.0.113.xxx"

    def test_ipv6_keeps_prefix(self):
        masked = Anonymizer().anonymize_ip("2001:db8::1")
        assert masked == "2001:0db8:0000:0000::xxxx"

    def test_garbage(self):
        assert Anonymizer().anonymize_ip("not-an-ip") == ANONYMIZED_IP

    def test_missing(self):
        assert Anonymizer().anonymize_ip(None) is None
        assert Anonymizer().anonymize_ip("") is None


class TestHashUserId:

    def test_unsalted_matches_sha256_prefix(self):
        expected = hashlib.sha256(b"alice").hexdigest()[:16]
        assert Anonymizer().hash_user_id("alice") == expected

    def test_deterministic(self):
        anon = Anonymizer("pepper")
        assert anon.hash_user_id("alice") == anon.hash_user_id("alice")
        assert len(anon.hash_user_id("alice")) == 16

    def test_salt_changes_token(self):
        assert Anonymizer("a").hash_user_id("alice") != Anonymizer("b").hash_user_id("alice")

    def test_not_reversible_looking(self):
        token = Anonymizer().hash_user_id("alice")
        assert "alice" not in token

    def test_missing(self):
        assert Anonymizer().hash_user_id(None) is None
