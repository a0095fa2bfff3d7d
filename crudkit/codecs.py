"""Record file codecs."""

from typing import Any, Protocol

import msgspec
import yaml


class RecordCodec(Protocol):
    """Protocol for encoding records to file contents."""

    extension: str

    def encode(self, record: dict[str, Any]) -> bytes:
        """Encode a record, raising TypeError on unsupported values."""
        ...

    def decode(self, data: bytes) -> dict[str, Any]:
        """Decode a record, raising ValueError on bad content."""
        ...


class YamlCodec:
    """YAML record files."""

    extension = "yaml"

    def encode(self, record: dict[str, Any]) -> bytes:
        try:
            text = yaml.safe_dump(
                record, default_flow_style=False, allow_unicode=True, sort_keys=False
            )
        except yaml.YAMLError as e:
            raise TypeError(f"Cannot encode record as YAML: {e}") from e
        return text.encode("utf-8")

    def decode(self, data: bytes) -> dict[str, Any]:
        try:
            record = yaml.safe_load(data.decode("utf-8"))
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            raise ValueError(f"Invalid YAML: {e}") from e
        if not isinstance(record, dict):
            raise ValueError(f"Expected a mapping, got {type(record).__name__}")
        return record


class JsonCodec:
    """JSON record files."""

    extension = "json"

    def __init__(self):
        self.encoder = msgspec.json.Encoder()
        self.decoder = msgspec.json.Decoder(dict[str, Any])

    def encode(self, record: dict[str, Any]) -> bytes:
        try:
            data = self.encoder.encode(record)
        except (msgspec.EncodeError, TypeError) as e:
            raise TypeError(f"Cannot encode record as JSON: {e}") from e
        return msgspec.json.format(data, indent=2)

    def decode(self, data: bytes) -> dict[str, Any]:
        try:
            return self.decoder.decode(data)
        except msgspec.DecodeError as e:
            raise ValueError(f"Invalid JSON: {e}") from e


CODECS: dict[str, type] = {
    "yaml": YamlCodec,
    "json": JsonCodec,
}


def get_codec(codec: str | RecordCodec) -> RecordCodec:
    """Resolve a codec by name, passing codec instances through."""
    if not isinstance(codec, str):
        return codec
    try:
        return CODECS[codec.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown record format: {codec} (choose from {', '.join(CODECS)})"
        ) from None
