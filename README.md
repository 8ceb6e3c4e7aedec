# mtwire

Building blocks for speaking the MTProto wire protocol from Python, using only
the standard library.

## What is inside

- **TL types** (`mtwire.tl_types`): the `TLObject` base class, field kinds
  (`Kind`, `VectorOf`), `tl_field` for declaring dataclass fields with an
  optional flag tag (`"flag:3"`, `"flag2:1"`, `"encoded_in_bitflags"`,
  `"omitempty"`, `"-"`), the constructor registry (`register_objects`,
  `register_enums`, `lookup_object`), the pseudo objects `PseudoTrue`,
  `PseudoFalse`, `PseudoNil` and `WrappedSlice` with `unwrap_native_types`,
  and the fixed-width integers `Int128` and `Int256`.
- **Encoding** (`mtwire.tl_encoder`): `Encoder` writes ints, longs, doubles,
  bools, length-prefixed byte strings, vectors and objects to a binary stream;
  `marshal` returns the bytes of one object.
- **Decoding** (`mtwire.tl_decoder`): `Decoder` reads the same values back;
  `decode(data, cls)` reads a known type and `decode_unknown_object(data)`
  picks the class from the registry by its constructor id.
- **Transport framing** (`mtwire.mode`): the abridged, intermediate and full
  modes (`Abridged`, `Intermediate`, `Full`), `new_mode` to create one and
  send its announcement, `detect` to recognise one from incoming bytes, and
  `get_variant`.
- **Transport** (`mtwire.transport`): `TCPConnection` over a `TCPConnConfig`,
  and `Transport` / `open_transport`, which frame `Unencrypted` and `Encrypted`
  envelopes with a mode. A four-byte server reply is raised as `ErrCode`.
- **Envelopes** (`mtwire.messages`): `Unencrypted` with `serialize` and
  `deserialize_unencrypted`, the `Encrypted` record, and `serialize_packet`
  for the inner plaintext of an encrypted message.
- **Sessions** (`mtwire.session`): the `Session` record, the `SessionLoader`
  interface with `InMemorySessionLoader`, string sessions (`StringSession.encode`,
  `decode_string_session`) and the JSON-ready token form
  (`session_to_token`, `session_from_token`).
- **Helpers**: data-centre addresses, `MsgIDGenerator`, `auth_key_hash` and
  hashing (`mtwire.utils`); thread-safe `SyncMap` and `SyncSet`
  (`mtwire.syncmaps`); RSA block encryption, factorisation (`split_pq`, `fac`)
  and Diffie–Hellman values (`make_gab`) (`mtwire.mathutil`); a levelled,
  coloured stderr `Logger` (`mtwire.logger`); and licence key checks
  (`mtwire.license`: `validate_license`, `generate_license_key`).

## Installation

```
pip install .
```

## Example

Declare a TL object, register it, and round-trip it:

```python
import dataclasses
from typing import ClassVar

from mtwire.tl_types import Kind, TLObject, register_objects, tl_field
from mtwire.tl_encoder import marshal
from mtwire.tl_decoder import decode_unknown_object


@dataclasses.dataclass
class Pong(TLObject):
    crc: ClassVar[int] = 0x347773C5
    msg_id: int = tl_field(Kind.INT64, default=0)
    ping_id: int = tl_field(Kind.INT64, default=0)


register_objects(Pong)

data = marshal(Pong(msg_id=1, ping_id=42))
pong = decode_unknown_object(data)
assert pong.ping_id == 42
```

Framing a message with the intermediate mode over any object with `read` and
`write`:

```python
import io
from mtwire.mode import Variant, new_mode

conn = io.BytesIO()
mode = new_mode(Variant.INTERMEDIATE, conn)
mode.write_msg(b"\x00" * 8)
assert conn.getvalue() == b"\xee\xee\xee\xee" + b"\x08\x00\x00\x00" + b"\x00" * 8
```

## What the package does not do

- It ships no MTProto service constructors; define and register your own
  `TLObject` subclasses as in the example above.
- It does not encrypt or decrypt messages. `Transport` handles `Encrypted`
  envelopes only through a cipher object you pass in, with `serialize` and
  `deserialize` methods.
- It has no client: no key exchange, request/response loop, reconnection or
  ping routine. It also has no file-backed session storage; sessions live in
  memory or in the token form you persist yourself.
- The padded intermediate mode is not supported.

## Running the tests

```
pip install .[test]
pytest
```