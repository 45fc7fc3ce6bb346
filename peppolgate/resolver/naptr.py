"""Publisher discovery via DNS NAPTR records.

Resolution failure is an expected outcome: a timeout, an empty answer, or
an unusable rewrite rule all produce ``None`` rather than an exception.
An unregistered participant is simply not found.

The DNS query itself is injectable (``lookup=``) so callers and tests can
supply their own record source.  The default uses ``dns.asyncresolver``.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable

import dns.asyncresolver
import dns.exception

from peppolgate.models.addresses import NaptrRecord, PublisherRecord, RewriteRule

logger = logging.getLogger(__name__)

PUBLISHER_SERVICE_MARKER = "meta:smp"

NaptrLookup = Callable[[str], Awaitable[list[NaptrRecord]]]


class RewriteRuleError(ValueError):
    """Raised when a NAPTR rewrite rule cannot be parsed or applied."""


# ------------------------------------------------------------------
# DNS access
# ------------------------------------------------------------------


async def dns_naptr_lookup(hostname: str, *, timeout: float = 5.0) -> list[NaptrRecord]:
    """Query NAPTR records for *hostname* with dnspython.

    Raises ``dns.exception.DNSException`` for NXDOMAIN, empty answers and
    timeouts; ``resolve_publisher_record`` turns those into ``None``.
    """
    resolver = dns.asyncresolver.Resolver()
    resolver.lifetime = timeout
    answer = await resolver.resolve(hostname, "NAPTR")
    records: list[NaptrRecord] = []
    for rdata in answer:
        records.append(
            NaptrRecord(
                order=rdata.order,
                preference=rdata.preference,
                flags=rdata.flags.decode("ascii", "replace"),
                service=rdata.service.decode("ascii", "replace"),
                regexp=rdata.regexp.decode("utf-8", "replace"),
                replacement=rdata.replacement.to_text(omit_final_dot=True),
            )
        )
    return records


# ------------------------------------------------------------------
# Rewrite rules
# ------------------------------------------------------------------


def parse_rewrite_rule(expression: str) -> RewriteRule:
    """Split ``<d>pattern<d>replacement<d>flags`` using its first char as delimiter.

    Raises
    ------
    RewriteRuleError
        If the expression is too short, has too few parts, or carries a
        pattern or flag that does not compile.
    """
    if not expression or len(expression) < 3:
        raise RewriteRuleError("Invalid NAPTR regexp field")

    delimiter = expression[0]
    parts = expression.split(delimiter)
    if len(parts) < 3:
        raise RewriteRuleError("NAPTR regexp has too few parts")

    rule = RewriteRule(
        delimiter=delimiter,
        pattern=parts[1],
        replacement=parts[2],
        flags=parts[3] if len(parts) > 3 else "",
    )
    _compile(rule)
    return rule


def _compile(rule: RewriteRule) -> re.Pattern[str]:
    re_flags = 0
    for flag in rule.flags:
        if flag == "i":
            re_flags |= re.IGNORECASE
        else:
            raise RewriteRuleError(f"Unsupported NAPTR regexp flag '{flag}'")
    try:
        return re.compile(rule.pattern, re_flags)
    except re.error as exc:
        raise RewriteRuleError(f"Invalid NAPTR regexp pattern: {exc}") from exc


def apply_rewrite_rule(rule: RewriteRule, target: str) -> str:
    """Substitute the first match of *rule* in *target*."""
    pattern = _compile(rule)
    try:
        return pattern.sub(rule.replacement, target, count=1)
    except re.error as exc:
        raise RewriteRuleError(f"Invalid NAPTR regexp replacement: {exc}") from exc


# ------------------------------------------------------------------
# Resolution
# ------------------------------------------------------------------


def select_record(records: list[NaptrRecord]) -> NaptrRecord | None:
    """Pick the best record, preferring publisher-service records."""
    if not records:
        return None
    preferred = [r for r in records if PUBLISHER_SERVICE_MARKER in r.service.lower()]
    candidates = preferred or records
    return min(candidates, key=lambda r: (r.order, r.preference))


def ensure_scheme(url: str) -> str:
    """Prefix ``https://`` unless *url* already has an http(s) scheme."""
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return f"https://{url}"


async def resolve_publisher_record(
    domain_name: str,
    *,
    lookup: NaptrLookup | None = None,
    timeout: float = 5.0,
) -> PublisherRecord | None:
    """Resolve *domain_name* to the record and URL of its metadata publisher.

    Returns
    -------
    PublisherRecord | None
        ``None`` when no usable record exists.
    """
    query = lookup or (lambda name: dns_naptr_lookup(name, timeout=timeout))
    try:
        records = await asyncio.wait_for(query(domain_name), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("NAPTR lookup for %s timed out after %.1fs", domain_name, timeout)
        return None
    except dns.exception.DNSException as exc:
        logger.info("No NAPTR records for %s: %s", domain_name, exc)
        return None

    record = select_record(records)
    if record is None:
        logger.info("No NAPTR records for %s", domain_name)
        return None

    rule: RewriteRule | None = None
    if record.regexp:
        try:
            rule = parse_rewrite_rule(record.regexp)
            url = apply_rewrite_rule(rule, record.replacement)
        except RewriteRuleError as exc:
            logger.warning(
                "Unusable NAPTR rewrite rule for %s (%r): %s",
                domain_name,
                record.regexp,
                exc,
            )
            return None
    else:
        url = record.replacement

    url = url.strip()
    if not url or url == ".":
        logger.info("NAPTR record for %s has no usable target", domain_name)
        return None

    return PublisherRecord(url=ensure_scheme(url), record=record, rewrite_rule=rule)


async def resolve_publisher(
    domain_name: str,
    *,
    lookup: NaptrLookup | None = None,
    timeout: float = 5.0,
) -> str | None:
    """Resolve *domain_name* to its publisher URL, or ``None`` if not found."""
    record = await resolve_publisher_record(domain_name, lookup=lookup, timeout=timeout)
    return record.url if record else None
