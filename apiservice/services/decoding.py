"""
Body decoding for ApiService responses.

A raw body is decoded by trying an ordered list of strategies and keeping the
first that succeeds:

- with a decoder:    decoder(json.loads(raw)), then decoder(raw)
- without a decoder: json.loads(raw), then raw unchanged
"""

import json
from typing import Any, Callable, TypeVar

from apiservice.services.errors import MalformedResponseError

T = TypeVar("T")

Decoder = Callable[[Any], T]
DecodeStrategy = Callable[[str], Any]


def decode_json_with(decoder: Decoder[T]) -> DecodeStrategy:
    def strategy(raw: str) -> T:
        return decoder(json.loads(raw))

    return strategy


def decode_raw_with(decoder: Decoder[T]) -> DecodeStrategy:
    def strategy(raw: str) -> T:
        return decoder(raw)

    return strategy


def decode_json(raw: str) -> Any:
    return json.loads(raw)


def passthrough(raw: str) -> str:
    return raw


def build_decode_chain(decoder: Decoder[Any] | None = None) -> list[DecodeStrategy]:
    """Strategies to try, in order, for the given decoder."""
    if decoder is not None:
        return [decode_json_with(decoder), decode_raw_with(decoder)]
    return [decode_json, passthrough]


def decode_body(raw: str, decoder: Decoder[Any] | None = None) -> Any:
    """
    Decode a raw response body.

    Raises:
        MalformedResponseError: If no strategy accepts the body
    """
    last_error: Exception | None = None
    for strategy in build_decode_chain(decoder):
        try:
            return strategy(raw)
        except Exception as e:
            last_error = e

    raise MalformedResponseError(
        f"Could not decode response body: {last_error}"
    ) from last_error


def parse_json_or_none(raw: str | None) -> Any:
    """Best-effort JSON parse, None on any failure."""
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None
