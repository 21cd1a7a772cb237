import ipaddress
import unittest

from models.url import BlockReason
from safety.ip_classifier import classify_address, is_public_address, parse_ip_literal


class ClassifyAddressTests(unittest.TestCase):
    def assertBlocked(self, address, reason):
        verdict = classify_address(address)
        self.assertFalse(verdict.public, address)
        self.assertEqual(verdict.reason, reason, address)

    def test_public_addresses_allowed(self):
        for address in ("93.184.216.34", "8.8.8.8", "2606:2800:220:1:248:1893:25c8:1946"):
            with self.subTest(address=address):
                verdict = classify_address(address)
                self.assertTrue(verdict.public)
                self.assertIsNone(verdict.reason)

    def test_ipv4_blocked_ranges(self):
        cases = {
            "127.0.0.1": BlockReason.LOOPBACK,
            "127.0.0.5": BlockReason.LOOPBACK,
            "10.1.2.3": BlockReason.PRIVATE,
            "172.16.0.1": BlockReason.PRIVATE,
            "172.31.255.255": BlockReason.PRIVATE,
            "192.168.1.1": BlockReason.PRIVATE,
            "169.254.169.254": BlockReason.LINK_LOCAL,
            "0.0.0.0": BlockReason.THIS_NETWORK,
            "224.0.0.1": BlockReason.MULTICAST,
            "240.0.0.1": BlockReason.RESERVED,
            "255.255.255.255": BlockReason.RESERVED,
        }
        for address, reason in cases.items():
            with self.subTest(address=address):
                self.assertBlocked(address, reason)

    def test_private_range_edges_are_public(self):
        for address in ("172.15.255.255", "172.32.0.0", "11.0.0.0", "192.169.0.1"):
            with self.subTest(address=address):
                self.assertTrue(is_public_address(address))

    def test_ipv6_blocked_ranges(self):
        cases = {
            "::1": BlockReason.LOOPBACK,
            "::": BlockReason.UNSPECIFIED,
            "fc00::1": BlockReason.UNIQUE_LOCAL,
            "fd12:3456::1": BlockReason.UNIQUE_LOCAL,
            "fe80::1": BlockReason.LINK_LOCAL,
            "ff02::1": BlockReason.MULTICAST,
        }
        for address, reason in cases.items():
            with self.subTest(address=address):
                self.assertBlocked(address, reason)

    def test_ipv4_mapped_ipv6_uses_ipv4_table(self):
        self.assertBlocked("::ffff:127.0.0.1", BlockReason.LOOPBACK)
        self.assertBlocked("::ffff:7f00:1", BlockReason.LOOPBACK)
        self.assertBlocked("::ffff:10.0.0.1", BlockReason.PRIVATE)
        self.assertTrue(is_public_address("::ffff:8.8.8.8"))

    def test_ipv4_compatible_form_is_unwrapped(self):
        self.assertBlocked("::127.0.0.1", BlockReason.LOOPBACK)

    def test_nat64_and_6to4_forms_are_unwrapped(self):
        self.assertBlocked("64:ff9b::7f00:1", BlockReason.LOOPBACK)
        self.assertBlocked("64:ff9b::169.254.169.254", BlockReason.LINK_LOCAL)
        self.assertBlocked("2002:7f00:1::", BlockReason.LOOPBACK)
        self.assertBlocked("2002:a00:1::1", BlockReason.PRIVATE)
        self.assertTrue(is_public_address("64:ff9b::808:808"))
        self.assertTrue(is_public_address("2002:808:808::1"))

    def test_bracketed_and_zone_forms(self):
        self.assertBlocked("[::1]", BlockReason.LOOPBACK)
        self.assertBlocked("fe80::1%eth0", BlockReason.LINK_LOCAL)

    def test_shorthand_ipv4_literals(self):
        for literal in ("127.1", "2130706433", "0x7f.0.0.1", "0177.0.0.1", "0x7f000001"):
            with self.subTest(literal=literal):
                self.assertBlocked(literal, BlockReason.LOOPBACK)

    def test_non_address_fails_closed(self):
        self.assertBlocked("not-an-ip", BlockReason.INVALID)
        self.assertBlocked("", BlockReason.INVALID)

    def test_accepts_ipaddress_objects(self):
        self.assertFalse(is_public_address(ipaddress.ip_address("10.0.0.1")))


class ParseIpLiteralTests(unittest.TestCase):
    def test_hostnames_are_not_literals(self):
        for host in ("example.com", "localhost", "1.example.com"):
            with self.subTest(host=host):
                self.assertIsNone(parse_ip_literal(host))

    def test_canonical_forms(self):
        self.assertEqual(str(parse_ip_literal("10.0.0.1")), "10.0.0.1")
        self.assertEqual(str(parse_ip_literal("[::1]")), "::1")

    def test_shorthand_expansion(self):
        self.assertEqual(str(parse_ip_literal("127.1")), "127.0.0.1")
        self.assertEqual(str(parse_ip_literal("10.1.1")), "10.1.0.1")


if __name__ == "__main__":
    unittest.main()
