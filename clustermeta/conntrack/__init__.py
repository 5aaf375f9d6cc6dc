"""Conntrack netlink decoding, NAT translation cache and related telemetry."""