"""Constants for the IP range subsystem."""

from datetime import timedelta


DEFAULT_IP_RANGES_URL = "https://ip-ranges.amazonaws.com/ip-ranges.json"
DEFAULT_UPDATE_FREQUENCY = timedelta(hours=12)

# Document keys of the AWS ip-ranges.json format
IPV4_PREFIXES_KEY = "prefixes"
IPV4_PREFIX_FIELD = "ip_prefix"
IPV6_PREFIXES_KEY = "ipv6_prefixes"
IPV6_PREFIX_FIELD = "ipv6_prefix"
REGION_FIELD = "region"
SERVICE_FIELD = "service"

COMPONENT_IPRANGES = "ipranges"
