"""Enumerated choices of the middleware options."""

from enum import Enum


class IPFilter(str, Enum):
    """Which clients are sent straight to the origin store.

    - NONE: nobody; every request gets a signed edge URL
    - AWS: clients inside any published AWS range
    - AWS_REGION: clients inside the ranges of the listed regions
    """

    NONE = "none"
    AWS = "aws"
    AWS_REGION = "awsregion"


class UnpopulatedPolicy(str, Enum):
    """Decision used while filtering is on but no range data was ever fetched.

    - FAIL_CLOSED: treat every client as distant (signed edge URL)
    - FAIL_OPEN: treat every client as close (origin redirect)
    """

    FAIL_CLOSED = "failclosed"
    FAIL_OPEN = "failopen"
