"""Participant addressing models and DNS discovery results."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

PARTICIPANT_PREFIX = "iso6523-actorid-upis::"

_NON_DIGITS = re.compile(r"\D")


class AddressFormatError(ValueError):
    """Raised when a string cannot be read as ``scheme:identifier``."""


class ParticipantAddress(BaseModel):
    """A scheme-qualified network participant address.

    Serialized as ``scheme:identifier`` (e.g. ``0208:0123456789``).
    Equality is an exact, case-sensitive comparison of both parts.
    """

    model_config = ConfigDict(frozen=True)

    scheme: str
    identifier: str

    def __str__(self) -> str:
        return f"{self.scheme}:{self.identifier}"

    @classmethod
    def parse(cls, value: str) -> ParticipantAddress:
        """Parse ``scheme:identifier``, tolerating the participant prefix.

        Raises
        ------
        AddressFormatError
            If either part is missing.
        """
        text = value.strip()
        if text.startswith(PARTICIPANT_PREFIX):
            text = text[len(PARTICIPANT_PREFIX):]
        scheme, sep, identifier = text.partition(":")
        if not sep or not scheme or not identifier:
            raise AddressFormatError(
                f"Invalid participant address '{value}'. Expected 'scheme:identifier'."
            )
        return cls(scheme=scheme, identifier=identifier)

    @classmethod
    def coerce(cls, value: str, default_scheme: str = "0208") -> ParticipantAddress:
        """Read a caller-supplied recipient, filling in a missing scheme.

        A bare identifier gets *default_scheme* and keeps only its digits,
        so ``"BE 0123.456.789"`` becomes ``0208:0123456789``.
        """
        text = value.strip()
        if text.startswith(PARTICIPANT_PREFIX):
            text = text[len(PARTICIPANT_PREFIX):]
        if ":" not in text:
            digits = _NON_DIGITS.sub("", text)
            if not digits:
                raise AddressFormatError(
                    f"Invalid participant address '{value}'. No identifier digits found."
                )
            return cls(scheme=default_scheme, identifier=digits)
        return cls.parse(text)


class NaptrRecord(BaseModel):
    """One NAPTR answer as consumed by publisher discovery."""

    model_config = ConfigDict(frozen=True)

    order: int
    preference: int
    flags: str = ""
    service: str = ""
    regexp: str = ""
    replacement: str = ""


class RewriteRule(BaseModel):
    """A compiled ``<delim>pattern<delim>replacement<delim>flags`` rule."""

    model_config = ConfigDict(frozen=True)

    delimiter: str
    pattern: str
    replacement: str
    flags: str = ""


class PublisherRecord(BaseModel):
    """Result of DNS discovery for one participant.

    Ephemeral: recomputed on every resolution and never persisted.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    record: NaptrRecord
    rewrite_rule: RewriteRule | None = None
