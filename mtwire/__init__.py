"""MTProto wire toolkit: TL serialization, transport framing, message envelopes and session encodings."""

__version__ = "0.1.0"